"""
Print a bcrypt hash for a password, e.g. to insert a user by hand.
Uses the same password context as the API, so the hash verifies at login.
Run from backend dir (DATABASE_URL must be set): python scripts/hash_password.py <password>
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.auth import hash_password


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python scripts/hash_password.py <password>")
        sys.exit(1)
    password = argv[0]
    print(f"Password: {password}")
    print(f"Hash:     {hash_password(password)}")

if __name__ == "__main__":
    main()
