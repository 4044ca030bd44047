"""
torch_erbpower: PyTorch ERB Power Spectrogram
=============================================

A differentiable PyTorch implementation of an FFT-based cochlear power
spectrogram ("cochleogram"): a time-frequency power representation whose rows
are auditory channels spaced on the Equivalent Rectangular Bandwidth (ERB)
scale and whose columns are analysis instants. It mimics the frequency and
temporal resolution of the human cochlea and is meant as a front end to
auditory-perception and hearing models.

**Key Features:**
    - Hardware-accelerated with PyTorch (CUDA, MPS, CPU)
    - Vectorized: one FFT batch and one matrix product per signal
    - Gammatone-shaped analysis window and ERB-normalized gammatone kernels
    - Extensively documented with examples and references

**Quick Start:**

    >>> import torch
    >>> import torch_erbpower
    >>>
    >>> # Spectrogram with default channels (1/2-ERB spaced, 30 Hz - 16 kHz)
    >>> audio = torch.randn(44100)  # 1 second of audio at 44.1 kHz
    >>> power, fc, t = torch_erbpower.erbpower(audio, fs=44100)
    >>>
    >>> # Or build the module once and reuse it
    >>> model = torch_erbpower.ERBPower(fs=44100, hop_size=0.005, bw_factor=1.5)
    >>> power, fc, t = model(audio)

**Package Structure:**

    torch_erbpower/
    ├── models/             # End-to-end transforms
    │   └── ERBPower                - FFT-based cochlear power spectrogram
    │
    └── common/             # Reusable building blocks
        ├── filterbanks.py          - ERB scale, analysis window, kernel bank
        ├── filters.py              - Gammatone window, centroid, framing
        └── errors.py               - Exception taxonomy

**Command Line:**

    $ python -m torch_erbpower speech.wav --hop-size 0.005 -o speech_erb.npz

**Author:**
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

**License:**
    GNU General Public License v3.0 or later (GPLv3+)

**Version History:**
    - 0.1.0 (2026-10): Initial release
"""

# ============================================================================
# Package Metadata
# ============================================================================

__version__ = "0.1.0"
__author__ = "Stefano Giacomelli"
__email__ = "stefano.giacomelli@graduate.univaq.it"
__license__ = "GPL-3.0-or-later"
__description__ = "PyTorch ERB power spectrogram - FFT-based cochleogram with ERB-scaled channels"

# ============================================================================
# Public API - End-to-End Transforms
# ============================================================================

from torch_erbpower.models.erbpower import ERBPower, ERBPowerConfig, erbpower

# ============================================================================
# Public API - Common Building Blocks
# ============================================================================

# --- ERB Scale & Kernel Bank ---
from torch_erbpower.common.filterbanks import (
    # Utility functions for ERB scale conversions
    erb,                                # ERB bandwidth at a frequency
    erbfromhz,                          # Frequency to ERB-rate
    erbtohz,                            # ERB-rate to frequency
    erbspace,                           # ERB-spaced frequency grid
    erb_channel_frequencies,            # Half-ERB spaced channels in a range
    default_channel_frequencies,        # Default channels for a sampling rate

    # Analysis window
    window_size,                        # FFT size from the "0 Hz" channel ERD
    design_window,                      # Gammatone-envelope analysis window

    # Kernels
    gammatone_power_tf,                 # Gammatone power transfer function
    kernel_bandwidths,                  # Target and kernel bandwidths
    erb_kernel_bank,                    # Kernel matrix
    kernel_response_check,              # Offline check of the kernel approximation

    # Modules
    FramePowerSpectrum,                 # Windowed one-sided power spectrum
    GammatoneKernelBank,                # ERB remapping of power spectra
)

# --- Windowing & Framing ---
from torch_erbpower.common.filters import (
    as_vector,                          # 1-D input coercion
    gtwindow,                           # Time-reversed gammatone envelope
    centroid,                           # Energy centroid index
    pad_to_centroid,                    # Centroid-aligned zero padding
    frames,                             # Overlapping frame matrix
)

# --- Errors ---
from torch_erbpower.common.errors import (
    InvalidArgumentError,
    ShapeError,
    DomainError,
)

# ============================================================================
# Package-Level Exports
# ============================================================================

__all__ = [
    # Transforms
    "ERBPower",
    "ERBPowerConfig",
    "erbpower",

    # ERB scale utilities
    "erb",
    "erbfromhz",
    "erbtohz",
    "erbspace",
    "erb_channel_frequencies",
    "default_channel_frequencies",

    # Window & kernels
    "window_size",
    "design_window",
    "gammatone_power_tf",
    "kernel_bandwidths",
    "erb_kernel_bank",
    "kernel_response_check",
    "FramePowerSpectrum",
    "GammatoneKernelBank",

    # Signal processing utilities
    "as_vector",
    "gtwindow",
    "centroid",
    "pad_to_centroid",
    "frames",

    # Errors
    "InvalidArgumentError",
    "ShapeError",
    "DomainError",
]

# ============================================================================
# Convenience: Group components by category for easier discovery
# ============================================================================

transforms = {
    'ERBPower': ERBPower,
}

filterbanks = {
    'FramePowerSpectrum': FramePowerSpectrum,
    'GammatoneKernelBank': GammatoneKernelBank,
}
