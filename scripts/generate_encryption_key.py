#!/usr/bin/env python3
"""
Generate a Fernet key for ENCRYPTION_KEY in .env (phone numbers are encrypted with it)
Run: python scripts/generate_encryption_key.py
"""
from cryptography.fernet import Fernet

if __name__ == "__main__":
    key = Fernet.generate_key().decode()
    print("Add this line to your .env file:")
    print(f"ENCRYPTION_KEY={key}")
    print("\nKeep it stable: rotating the key makes stored phone numbers unreadable.")
