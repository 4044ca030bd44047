"""Reusable building blocks: ERB scale, analysis window, framing and kernel bank."""

from torch_erbpower.common.errors import DomainError, InvalidArgumentError, ShapeError
from torch_erbpower.common.filters import as_vector, centroid, frames, gtwindow, pad_to_centroid
from torch_erbpower.common.filterbanks import (B0,
                                               BW0,
                                               ERD,
                                               FramePowerSpectrum,
                                               GammatoneKernelBank,
                                               default_channel_frequencies,
                                               design_window,
                                               erb,
                                               erb_channel_frequencies,
                                               erb_kernel_bank,
                                               erbfromhz,
                                               erbspace,
                                               erbtohz,
                                               gammatone_power_tf,
                                               kernel_bandwidths,
                                               kernel_response_check,
                                               window_size)

__all__ = ["DomainError",
           "InvalidArgumentError",
           "ShapeError",
           "as_vector",
           "centroid",
           "frames",
           "gtwindow",
           "pad_to_centroid",
           "B0",
           "BW0",
           "ERD",
           "FramePowerSpectrum",
           "GammatoneKernelBank",
           "default_channel_frequencies",
           "design_window",
           "erb",
           "erb_channel_frequencies",
           "erb_kernel_bank",
           "erbfromhz",
           "erbspace",
           "erbtohz",
           "gammatone_power_tf",
           "kernel_bandwidths",
           "kernel_response_check",
           "window_size",
           ]
