#!/usr/bin/env python3
"""
Password Hash Generator
Generates the bcrypt ADMIN_PASSWORD_HASH for the admin dashboard.
"""
import getpass
import sys

from trust_site.utils.auth import hash_password, verify_password


def main() -> int:
    print("Admin dashboard password hash generator")
    print()

    password = getpass.getpass("Enter admin password: ")
    if not password:
        print("Error: Password cannot be empty")
        return 1

    if password != getpass.getpass("Confirm password: "):
        print("Error: Passwords do not match")
        return 1

    hashed = hash_password(password)
    if not verify_password(password, hashed):
        print("Error: Generated hash does not verify")
        return 1

    print("\nCopy this line to your .env file:\n")
    print(f"ADMIN_PASSWORD_HASH={hashed}")
    print("\nKeep this hash secret and never commit it to version control.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
