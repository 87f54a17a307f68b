#!/usr/bin/env python3
"""
Warble Encoder CLI - Generate message audio files.
"""

import logging
import sys
from pathlib import Path

import click

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from warble import Configuration, WarbleEncoder


def parse_payload(payload: str, as_hex: bool) -> bytes:
    """Payload bytes from the command line text (UTF-8, or hex digits)."""
    if as_hex:
        return bytes.fromhex(payload)
    return payload.encode("utf-8")


@click.command()
@click.argument("payload", type=str)
@click.option(
    "-o", "--output",
    type=click.Path(),
    default="warble_message.wav",
    help="Output WAV file path",
)
@click.option(
    "--hex", "as_hex",
    is_flag=True,
    help="Read PAYLOAD as hexadecimal digits",
)
@click.option(
    "-p", "--preset",
    type=click.Choice(["audible", "ultrasonic"]),
    default="audible",
    help="Tone table preset (default: audible)",
)
@click.option(
    "-a", "--amplitude",
    type=float,
    default=0.7,
    help="Peak amplitude 0.0-1.0 (default: 0.7)",
)
@click.option(
    "-s", "--sample-rate",
    type=int,
    default=44100,
    help="Sample rate in Hz (default: 44100)",
)
@click.option(
    "--padding",
    type=float,
    default=0.5,
    help="Silence before and after the message in seconds (default: 0.5)",
)
@click.option(
    "--play",
    is_flag=True,
    help="Also play the message on the default output device",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
def main(payload: str, output: str, as_hex: bool, preset: str, amplitude: float,
         sample_rate: int, padding: float, play: bool, verbose: bool):
    """
    Encode PAYLOAD into a Warble audio file.

    The message carries exactly as many bytes as PAYLOAD; the decoder must be
    told the same size.

    Examples:

        warble_encode "hello" -o hello.wav

        warble_encode 01ff7e --hex --preset ultrasonic
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        data = parse_payload(payload, as_hex)
        configuration = Configuration.from_preset(preset, len(data), sample_rate)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if verbose:
        duration = configuration.message_samples / configuration.sample_rate
        click.echo(f"Encoding {len(data)} byte(s), {duration:.2f}s of audio...")
        click.echo(f"  Output: {output}")
        click.echo(f"  Preset: {preset}")
        click.echo(f"  Sample rate: {sample_rate} Hz")
        click.echo(f"  Amplitude: {amplitude}")

    encoder = WarbleEncoder(configuration)

    try:
        encoder.generate_to_file(
            output_path=output,
            payload=data,
            power_peak=amplitude,
            padding=padding,
        )
        click.echo(f"✓ Generated {output} (payload size {len(data)})")

        if play:
            from warble.audio import play_signal
            play_signal(encoder.generate_signal(data, amplitude), sample_rate)
    except Exception as e:
        click.echo(f"Error generating message: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
