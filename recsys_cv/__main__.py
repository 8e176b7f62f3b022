from .cross_validation import main

main()
