"""
Executed when running: python -m erlls
"""
from erlls.main import main

if __name__ == "__main__":
    main()
