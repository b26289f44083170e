"""Print a fresh AES-256 key for ENCRYPTION_KEY.

Run: python scripts/generate_encryption_key.py

Add the printed value to .env. Rotating the key makes every stored Strava
token unreadable, so connected users will have to re-authorize.
"""
from runnmate.security.token_encryption import generate_encryption_key


def main() -> None:
    key = generate_encryption_key()
    print(f"ENCRYPTION_KEY={key}")


if __name__ == "__main__":
    main()
