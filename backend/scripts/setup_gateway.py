#!/usr/bin/env python3
"""Gateway credential setup script.

Prompts for a gateway's API credentials and stores them in the OS
keychain, where ``config.Settings`` picks them up as fallbacks for the
gateway settings stored in the database.

Usage:
    python -m scripts.setup_gateway paypal
    python -m scripts.setup_gateway paypal_nvp
    python -m scripts.setup_gateway stripe
    python -m scripts.setup_gateway stripe --remove
    python -m scripts.setup_gateway paypal_nvp --status
"""

import argparse
import getpass
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from integrations.gateway_registry import gateway_for_source
from services.credential_manager import delete_credential, set_credential, stored_keys

# Source -> [(keychain key, prompt, is_secret)]
PROMPTS: dict[str, list[tuple[str, str, bool]]] = {
    "paypal": [
        ("PAYPAL_CLIENT_ID", "PayPal REST client id", False),
        ("PAYPAL_CLIENT_SECRET", "PayPal REST client secret", True),
    ],
    "paypal_nvp": [
        ("PAYPAL_API_USERNAME", "PayPal API username", False),
        ("PAYPAL_API_PASSWORD", "PayPal API password", True),
        ("PAYPAL_API_SIGNATURE", "PayPal API signature", True),
    ],
    "stripe": [
        ("STRIPE_TEST_SECRET", "Stripe test secret key (sk_test_...)", True),
        ("STRIPE_LIVE_SECRET", "Stripe live secret key (sk_live_..., blank to skip)", True),
        ("STRIPE_WEBHOOK_SECRET", "Stripe webhook signing secret (whsec_..., blank to skip)", True),
    ],
}


def collect(source: str, read=input, read_secret=getpass.getpass) -> dict[str, str]:
    """Prompt for each credential of ``source``; blank answers are left out."""
    values = {}
    for key, prompt, is_secret in PROMPTS[source]:
        reader = read_secret if is_secret else read
        value = reader(f"{prompt}: ").strip()
        if value:
            values[key] = value
    return values


def store(values: dict[str, str]) -> int:
    """Store values in the keychain and return the number of failures."""
    failures = 0
    for key, value in values.items():
        if set_credential(key, value):
            print(f"  Stored {key} in keychain")
        else:
            print(f"  Failed to store {key}")
            failures += 1
    return failures


def remove(source: str) -> None:
    for key, _, _ in PROMPTS[source]:
        if delete_credential(key):
            print(f"  Removed {key} from keychain")


def status(source: str) -> list[str]:
    """Report which of ``source``'s keychain entries are set.

    Returns:
        The keys still missing.
    """
    stored = set(stored_keys(gateway_for_source(source)))
    missing = []
    for key, _, _ in PROMPTS[source]:
        if key in stored:
            print(f"  {key}: set")
        else:
            print(f"  {key}: missing")
            missing.append(key)
    return missing


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Store gateway credentials in the OS keychain")
    parser.add_argument("source", choices=sorted(PROMPTS))
    parser.add_argument(
        "--remove",
        action="store_true",
        help="Delete this gateway's credentials from the keychain instead",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show which of this gateway's credentials are already stored",
    )
    args = parser.parse_args(argv)

    if args.status:
        return 1 if status(args.source) else 0

    if args.remove:
        remove(args.source)
        return 0

    print(f"{args.source} credential setup")
    print("=" * 50)
    values = collect(args.source)
    if not values:
        print("Nothing entered, nothing stored.")
        return 0
    failures = store(values)
    print()
    print("Enable the gateway with PUT /api/gateways/{id} once credentials are stored.")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
