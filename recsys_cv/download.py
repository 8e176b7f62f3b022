# download.py
"""Fetch and unpack a ratings archive when the canonical data file is missing.

The check is done on the data file itself (e.g. `data/ml-100k/u.data`), so a
present file costs zero network requests and a missing one exactly one GET.
The archive is saved inside `folder` and unpacked there. MovieLens archives
carry one top-level directory named after the dataset (`ml-100k/`); it is
dropped while extracting, so `u.data` lands at `folder/u.data` whatever
`folder` is called.

Failures are not caught here: an HTTP error, a truncated archive or a
missing data file after extraction stops the run.

Libraries
  requests: streamed HTTP GET with raise_for_status.
  zipfile/shutil/pathlib: archive extraction and paths from the standard library.
"""

import argparse, shutil, zipfile
from pathlib import Path
import requests

from .data import log

ML100K_URL = "https://files.grouplens.org/datasets/movielens/ml-100k.zip"
CHUNK_SIZE = 1 << 20

def download(url, folder, timeout=60):
    """Stream `url` into `folder`; return the path of the saved archive."""
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    zip_path = folder / url.rstrip("/").rsplit("/", 1)[-1]
    log(f"download {url} -> {zip_path}")
    r = requests.get(url, stream=True, timeout=timeout)
    r.raise_for_status()
    with open(zip_path, "wb") as f:
        for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                f.write(chunk)
    return zip_path

def extract(zip_path, folder):
    """
    Unpack `zip_path` into `folder`.

    When every member sits under one top-level directory (`ml-100k/u.data`),
    that directory is dropped, so `folder` may be named anything.
    """
    folder = Path(folder)
    with zipfile.ZipFile(zip_path, "r") as z:
        members = z.infolist()
        tops = {m.filename.split("/", 1)[0] for m in members}
        strip = len(tops) == 1 and all("/" in m.filename for m in members)
        for m in members:
            name = m.filename.split("/", 1)[1] if strip else m.filename
            target = folder / name
            if Path(name).is_absolute() or ".." in Path(name).parts:
                raise zipfile.BadZipFile(f"unsafe member path: {m.filename}")
            if not name or m.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with z.open(m) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)

def download_and_unzip(url, folder):
    folder = Path(folder)
    zip_path = download(url, folder)
    extract(zip_path, folder)
    return zip_path

def provision_dataset(url, folder, data_file):
    """
    Make sure `data_file` exists, downloading and extracting `url` otherwise.

    Returns True if a download happened, False if the file was already there.
    """
    data_file = Path(data_file)
    if data_file.exists():
        log(f"data file present: {data_file}")
        return False
    download_and_unzip(url, folder)
    if not data_file.exists():
        raise FileNotFoundError(f"{data_file} not found after extracting {url}")
    return True

def main(argv=None):
    ap = argparse.ArgumentParser(description="Download and unpack a MovieLens archive if missing.")
    ap.add_argument("--url", default=ML100K_URL)
    ap.add_argument("--folder", default="data/ml-100k")
    ap.add_argument("--data_file", default="u.data", help="file name expected inside --folder")
    args = ap.parse_args(argv)
    folder = Path(args.folder)
    fetched = provision_dataset(args.url, folder, folder / args.data_file)
    log("downloaded" if fetched else "nothing to do")

if __name__ == "__main__":
    main()
