"""
Entry point for `python -m mariadb_upgrader`.
"""

from .cli import main

if __name__ == "__main__":
    try:
        main()
    except Exception:
        import traceback
        print("❌ Unhandled error:")
        traceback.print_exc()
        raise
