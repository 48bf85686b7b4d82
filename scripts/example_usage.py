#!/usr/bin/env python3
"""
Example usage of the AstroUSB switch driver

This script demonstrates:
- Loading the switch configuration
- Listing the switches
- Toggling a port synchronously
- A timed (asynchronous) set, and cancelling one
- Saving the switch profile
"""

import logging
import sys
import time
from pathlib import Path

# Add src to path so we can import astrousb_switch
sys.path.insert(0, "src")

from astrousb_switch import SwitchDriver, YamlProfileStore, load_config

CONFIG = Path(__file__).resolve().parent.parent / "config" / "switch_config.yaml"


def main():
    """Run example switch sequence"""

    print("AstroUSB Switch Driver - Example Usage")
    print("=" * 60)

    config = load_config(CONFIG)

    with SwitchDriver.from_config(config) as switches:
        print(f"\nConnected on {switches.port}, {switches.max_switch} switches:")
        for i in range(switches.max_switch):
            print(
                f"  {i}: {switches.get_switch_name(i):14s} "
                f"[{switches.min_switch_value(i)} .. {switches.max_switch_value(i)}] "
                f"step {switches.switch_step(i)}  value {switches.get_switch_value(i)}"
            )

        # Example 1: Turn on the mount
        print("\n" + "=" * 60)
        print("Example 1: Turn on switch 0")
        switches.set_switch(0, True)
        print(f"✓ {switches.get_switch_name(0)} ON")

        # Example 2: Timed set of the dew heater
        print("\n" + "=" * 60)
        print("Example 2: Dew heater to 42% (snaps to 40%), settling over 2 s")
        handle = switches.set_async_value(3, 42)
        while not switches.state_change_complete(3):
            print("    waiting...")
            time.sleep(0.5)
        print(f"✓ Dew heater at {switches.get_switch_value(3)}% ({handle.outcome.name})")

        # Example 3: Cancel a timed set
        print("\n" + "=" * 60)
        print("Example 3: Start flat panel, then cancel")
        handle = switches.set_async(4, True)
        time.sleep(0.3)
        switches.cancel_async(4)
        handle.wait()
        print(f"✓ Flat panel still at {switches.get_switch_value(4)} ({handle.outcome.name})")

        # Example 4: Save the profile
        print("\n" + "=" * 60)
        print("Example 4: Save switch profile")
        switches.save_profile(YamlProfileStore("switch_profile.yaml"))
        print("✓ Saved to switch_profile.yaml")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)
