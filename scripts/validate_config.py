#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from signal_engine.config.loader import ConfigLoader
from signal_engine.config.validation import ConfigValidator, ValidationError


def validate_symbol_config(loader: ConfigLoader, symbol: str) -> List[ValidationError]:
    """Validate the merged configuration for a specific symbol."""
    return loader.validate(symbol)


def main():
    """Main validation function."""
    print("Validating signal engine configuration...")

    loader = ConfigLoader.create()

    # Unconfigured symbols fall back to defaults
    symbols = loader.configured_symbols() + ["UNKNOWN"]

    all_valid = True

    for symbol in symbols:
        print(f"\nValidating {symbol}...")

        try:
            errors = validate_symbol_config(loader, symbol)

            if errors:
                print(f"  Found {len(errors)} validation errors:")
                for error in errors:
                    print(f"  - {error.field}: {error.message} (value: {error.value})")
                all_valid = False
            else:
                # Typed build catches unknown keys in the symbol file
                loader.build_config(symbol)
                print(f"  {symbol} configuration is valid")

        except Exception as e:
            print(f"  Error validating {symbol}: {e}")
            all_valid = False

    print("\nTesting per-call overrides...")
    test_overrides = {
        "stops": {
            "max_stop_percent": 4.0,
            "min_stop_percent": 0.75,
        },
        "scanner": {
            "min_risk_reward": 2.0,
        },
    }

    try:
        config = loader.merge_config("SPY", test_overrides)
        errors = ConfigValidator.validate_config(config)

        if errors:
            print("  Override validation failed:")
            for error in errors:
                print(f"  - {error.field}: {error.message}")
            all_valid = False
        else:
            stops = loader.build_config("SPY", test_overrides).stops
            print(f"  Override validation passed (SPY stops {stops.min_stop_percent}%-{stops.max_stop_percent}%)")

    except Exception as e:
        print(f"  Error testing overrides: {e}")
        all_valid = False

    if all_valid:
        print("\nAll configuration validation passed!")
        sys.exit(0)
    else:
        print("\nConfiguration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
