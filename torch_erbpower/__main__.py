"""
ERB Power Spectrogram - Command Line Interface
==============================================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Computes the ERB power spectrogram of a WAV file and stores it in a ``.npz``
archive with the arrays ``power`` (channels x frames), ``fc`` (Hz), ``t`` (s)
and ``fs`` (Hz). Multichannel files are mixed down to mono before analysis.

Usage:
    python -m torch_erbpower                         # Print help
    python -m torch_erbpower speech.wav              # Default channels, 10 ms hop
    python -m torch_erbpower speech.wav --hop-size 0.005 --bw-factor 1.5
    python -m torch_erbpower speech.wav --fc-range 100 8000 --n-channels 32 -o out.npz
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import torch
from scipy.io import wavfile

from torch_erbpower.common.filterbanks import erb_channel_frequencies
from torch_erbpower.models.erbpower import DEFAULT_BW_FACTOR, DEFAULT_HOP_SIZE, ERBPower


def load_wav(path):
    """
    Read a WAV file as a mono float64 signal in [-1, 1].

    Parameters
    ----------
    path : str or Path
        WAV file.

    Returns
    -------
    x : np.ndarray
        Signal, shape (T,).

    fs : int
        Sampling rate in Hz.
    """
    fs, data = wavfile.read(str(path))

    if data.dtype == np.uint8:
        x = (data.astype(np.float64) - 128.0) / 128.0
    elif np.issubdtype(data.dtype, np.integer):
        x = data.astype(np.float64) / float(np.iinfo(data.dtype).max)
    else:
        x = data.astype(np.float64)

    # Mix down to mono
    if x.ndim > 1:
        x = x.mean(axis=1)

    return x, fs


def build_parser():
    parser = argparse.ArgumentParser(
        prog="torch_erbpower",
        description="Compute the ERB power spectrogram (cochleogram) of a WAV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m torch_erbpower speech.wav                            # Default channels
  python -m torch_erbpower speech.wav --hop-size 0.005           # 5 ms analysis interval
  python -m torch_erbpower speech.wav --fc-range 100 8000        # Half-ERB channels in a range
  python -m torch_erbpower speech.wav -o speech_erb.npz          # Custom output path
        """
    )

    parser.add_argument(
        "audio",
        nargs="?",
        help="Input WAV file"
    )

    parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output .npz file; any other suffix is replaced by .npz (default: input path with .npz suffix)"
    )

    parser.add_argument(
        "--hop-size",
        type=float,
        default=DEFAULT_HOP_SIZE,
        help=f"Interval between analyses in seconds (default: {DEFAULT_HOP_SIZE})"
    )

    parser.add_argument(
        "--bw-factor",
        type=float,
        default=DEFAULT_BW_FACTOR,
        help=f"Factor applied to channel bandwidths (default: {DEFAULT_BW_FACTOR})"
    )

    parser.add_argument(
        "--fc-range",
        type=float,
        nargs=2,
        metavar=("LOW", "HIGH"),
        help="Lowest and highest channel frequency in Hz (default: 30 Hz to 16 kHz)"
    )

    parser.add_argument(
        "--n-channels",
        type=int,
        help="Number of channels within --fc-range (default: 1/2-ERB spacing)"
    )

    return parser


def main(argv=None):
    """Entry point of ``python -m torch_erbpower`` and ``torch-erbpower``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.audio is None:
        parser.print_help()
        return 0

    if args.n_channels is not None and args.fc_range is None:
        parser.error("--n-channels requires --fc-range")

    audio_path = Path(args.audio)
    # numpy appends .npz to any other suffix
    output_path = Path(args.output) if args.output else audio_path
    output_path = output_path.with_suffix(".npz")

    try:
        x, fs = load_wav(audio_path)

        fc = None
        if args.fc_range is not None:
            fc = erb_channel_frequencies(args.fc_range[0], args.fc_range[1], n=args.n_channels)

        model = ERBPower(fs=fs, fc=fc, hop_size=args.hop_size, bw_factor=args.bw_factor)
        with torch.no_grad():
            power, fc, t = model(torch.from_numpy(x))

        np.savez(output_path, power=power.numpy(), fc=fc.numpy(), t=t.numpy(), fs=fs)
    except (OSError, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    print(f"✓ Saved {tuple(power.shape)} spectrogram "
          f"({model.num_channels} channels, {fc[0].item():.1f}-{fc[-1].item():.1f} Hz) to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
