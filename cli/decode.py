#!/usr/bin/env python3
"""
Warble Decoder CLI - Decode messages from a file or live audio input.
"""

import logging
import sys
from pathlib import Path

import click

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from warble import Configuration, decode_file


def format_payload(payload: bytes) -> str:
    """Printable text when the payload is UTF-8, hex digits otherwise."""
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return payload.hex()
    if text.isprintable():
        return repr(text)
    return payload.hex()


@click.command()
@click.option(
    "-i", "--input",
    type=click.Path(exists=True),
    help="Decode from file instead of live audio",
)
@click.option(
    "-n", "--payload-size",
    type=int,
    default=8,
    help="Payload size in bytes (default: 8)",
)
@click.option(
    "-p", "--preset",
    type=click.Choice(["audible", "ultrasonic"]),
    default="audible",
    help="Tone table preset (default: audible)",
)
@click.option(
    "-d", "--device",
    type=int,
    help="Audio input device number (default: system default)",
)
@click.option(
    "-c", "--channel",
    type=int,
    default=0,
    help="Audio channel to listen to (default: 0)",
)
@click.option(
    "-s", "--sample-rate",
    type=int,
    default=44100,
    help="Sample rate in Hz (default: 44100)",
)
@click.option(
    "-l", "--list-devices",
    is_flag=True,
    help="List available audio input devices",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output with decoder logging",
)
def main(input: str | None, payload_size: int, preset: str, device: int | None,
         channel: int, sample_rate: int, list_devices: bool, verbose: bool):
    """
    Decode Warble messages.

    Examples:

        warble_decode -n 5 -i hello.wav      # Decode from file

        warble_decode -n 5                   # Decode from default input

        warble_decode --list-devices         # Show audio devices
    """
    if list_devices:
        import sounddevice as sd
        click.echo("Audio Input Devices:")
        click.echo("-" * 60)
        for i, dev in enumerate(sd.query_devices()):
            if dev['max_input_channels'] > 0:
                click.echo(f"  [{i}] {dev['name']}")
        return

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        configuration = Configuration.from_preset(preset, payload_size, sample_rate)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    # File decoding mode
    if input:
        click.echo(f"Decoding from file: {input}")
        click.echo("-" * 40)

        try:
            results = decode_file(input, configuration, channel)
        except Exception as e:
            click.echo(f"Error reading {input}: {e}", err=True)
            sys.exit(1)

        if not results:
            click.echo("No Warble messages detected.", err=True)
            sys.exit(1)

        click.echo(f"Detected {len(results)} message(s):")
        for timestamp, payload in results:
            click.echo(f"  {timestamp:6.2f}s -> {format_payload(payload)}")
        return

    # Live decoding mode
    from warble.audio import LiveDecoder

    click.echo("Decoding Warble from live audio input...")
    if device is not None:
        click.echo(f"Using device {device}")
    click.echo("Press Ctrl+C to stop.")
    click.echo("-" * 40)

    decoder = LiveDecoder(configuration, device=device, channel=channel)

    try:
        decoder.start()

        while True:
            payload = decoder.get_message(timeout=0.1)
            if payload is not None:
                click.echo(f"✉ {format_payload(payload)}")
                if verbose:
                    click.echo(f"Stats: {decoder.get_statistics()}")

    except KeyboardInterrupt:
        click.echo("\n\nStopped.")
    except Exception as e:
        click.echo(f"\nError: {e}", err=True)
        sys.exit(1)
    finally:
        decoder.stop()


if __name__ == "__main__":
    main()
