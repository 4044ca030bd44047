"""
ERB Power Spectrogram (Cochleogram)
===================================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements an FFT-based cochlear power spectrogram with the same
frequency resolution and frequency scale as the human ear. The signal is split
into overlapping frames, each windowed by the time-reversed envelope of a
low-frequency gammatone impulse response (equivalent rectangular duration of
about 20 ms), and Fourier transformed. The resulting linear-frequency power
spectrum, whose resolution is that of a "0 Hz" channel, is remapped onto
ERB-spaced channels by weighting it with gammatone power transfer functions of
the proper bandwidth.

Temporal resolution is set by the ERD of the lowest channels (about 20 ms),
roughly twice behavioural estimates of auditory temporal resolution (8-13 ms).
The output magnitude is not calibrated to any absolute scale.

References
----------
.. [1] B. R. Glasberg and B. C. J. Moore, "Derivation of auditory filter shapes
       from notched-noise data," *Hear. Res.*, vol. 47, no. 1-2, pp. 103-138,
       Aug. 1990.

.. [2] R. D. Patterson, K. Robinson, J. Holdsworth, D. McKeown, C. Zhang, and
       M. Allerhand, "Complex sounds and auditory images," in *Auditory
       Physiology and Perception*, Oxford: Pergamon, 1992, pp. 429-446.

.. [3] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acust.*, vol. 6,
       p. 19, 2022.
"""

import warnings
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple, Union

import torch
import torch.nn as nn

from torch_erbpower.common.errors import DomainError, InvalidArgumentError
from torch_erbpower.common.filterbanks import (FramePowerSpectrum,
                                               GammatoneKernelBank,
                                               default_channel_frequencies,
                                               design_window)
from torch_erbpower.common.filters import as_vector, frames, pad_to_centroid

DEFAULT_HOP_SIZE = 0.01     # s
DEFAULT_BW_FACTOR = 1.0


@dataclass
class ERBPowerConfig:
    r"""
    Parameters of the ERB power spectrogram.

    Holds the user-facing parameters with their defaults. :meth:`resolve`
    validates them and fills in the computed defaults once, at construction of
    :class:`ERBPower`.

    Attributes
    ----------
    fs : float
        Sampling rate in Hz. Required.

    fc : torch.Tensor, optional
        Channel centre frequencies in Hz. Default: None, i.e. 1/2-ERB spaced
        channels from 30 Hz to 16 kHz (or 1/2 ERB below Nyquist if lower).

    hop_size : float
        Interval between analyses in seconds. Default: 0.01.

    bw_factor : float
        Factor applied to the channel bandwidths. Default: 1.0.
    """
    fs: Optional[float] = None
    fc: Optional[torch.Tensor] = None
    hop_size: float = DEFAULT_HOP_SIZE
    bw_factor: float = DEFAULT_BW_FACTOR

    @property
    def hop_samples(self) -> float:
        """Hop size in samples (may be fractional)."""
        return self.hop_size * self.fs

    def resolve(self, dtype: torch.dtype = torch.float64) -> "ERBPowerConfig":
        """
        Validate the parameters and compute the defaults.

        Parameters
        ----------
        dtype : torch.dtype, optional
            Data type of the resolved channel frequencies. Default: torch.float64.

        Returns
        -------
        ERBPowerConfig
            New configuration with ``fc`` set to a 1-D tensor.

        Raises
        ------
        InvalidArgumentError
            If ``fs`` is missing or not positive, or if ``hop_size``,
            ``bw_factor`` are not positive, or if ``fc`` is empty.
        ShapeError
            If ``fc`` is not 1-D.
        DomainError
            If any channel frequency is not finite and strictly positive.
        """
        if self.fs is None:
            raise InvalidArgumentError("need to specify sampling rate")
        fs = float(self.fs)
        if not fs > 0:
            raise InvalidArgumentError(f"Sampling rate must be positive, got {self.fs}")

        hop_size = DEFAULT_HOP_SIZE if self.hop_size is None else float(self.hop_size)
        if not hop_size > 0:
            raise InvalidArgumentError(f"hop_size must be positive, got {self.hop_size}")

        bw_factor = DEFAULT_BW_FACTOR if self.bw_factor is None else float(self.bw_factor)
        if not bw_factor > 0:
            raise InvalidArgumentError(f"bw_factor must be positive, got {self.bw_factor}")

        if self.fc is None:
            fc = default_channel_frequencies(fs, dtype=dtype)
        else:
            fc = as_vector(self.fc, name="fc").to(dtype=dtype).clone()
            if fc.numel() == 0:
                raise InvalidArgumentError("fc must hold at least one channel frequency")
            if not torch.isfinite(fc).all():
                raise DomainError(f"Channel frequencies must be finite, got {fc[~torch.isfinite(fc)].tolist()} Hz")
            if (fc <= 0).any():
                raise DomainError(f"Channel frequencies must be positive, got min {fc.min().item()} Hz")

        return replace(self, fs=fs, fc=fc, hop_size=hop_size, bw_factor=bw_factor)


class ERBPower(nn.Module):
    r"""
    FFT-based cochlear power spectrogram (ERB power).

    Produces a power spectrogram with the same spectral resolution and
    frequency scale as the human cochlea: rows are auditory channels spaced on
    the ERB-rate scale, columns are analysis instants every ``hop_size``
    seconds.

    Algorithm Overview
    ------------------
    **Stage 1: Framing**

    The signal is zero-padded by ``offset = round(centroid(w**2))`` samples in
    front and ``W - offset`` at the end, so that each frame's analysis instant
    coincides with the energy centroid of the window, then cut into frames of
    :math:`W` samples every :math:`h = \text{hop\_size} \cdot f_s` samples.

    **Stage 2: Power spectrum**

    Frames are multiplied by the gammatone-envelope window :math:`w` and
    Fourier transformed; the first :math:`W/2` power coefficients are kept:

    .. math::
        P[k, j] = |\text{FFT}(w \cdot x_j)[k]|^2

    The window size :math:`W` is the smallest power of two above twice the ERD
    of the "0 Hz" channel (:math:`b_0 = 24.7/0.982` Hz), e.g. 2048 at 44.1 kHz.

    **Stage 3: ERB remapping**

    Each channel is a weighted sum of power coefficients, the weights being a
    gammatone power transfer function with bandwidth
    :math:`\sqrt{b_c^2 - b_0^2}` normalized to sum to :math:`\text{ERB}(f_c)`:

    .. math::
        C = K^\top P

    Parameters
    ----------
    fs : float
        Sampling rate in Hz. Required (``None`` raises
        :class:`~torch_erbpower.common.errors.InvalidArgumentError`).

    fc : torch.Tensor, optional
        Channel centre frequencies in Hz. Default: None (1/2-ERB spaced,
        30 Hz to min(16 kHz, Nyquist - ERB(Nyquist)/2)).

    hop_size : float, optional
        Interval between analyses in seconds. Default: 0.01.

    bw_factor : float, optional
        Factor applied to filter bandwidths. Default: 1.0. Values below 1 are
        limited by the window bandwidth: every channel must keep
        :math:`b_c > b_0`.

    dtype : torch.dtype, optional
        Data type for computations. Default: torch.float64. Use float32 on
        devices without double precision (MPS).

    return_stages : bool, optional
        If True, :meth:`forward` also returns a dict with intermediate results.
        Default: False.

    Attributes
    ----------
    config : ERBPowerConfig
        Resolved parameters.

    wsize : int
        FFT window size in samples.

    offset : int
        Leading zero padding (window energy centroid).

    spectrum : FramePowerSpectrum
        Windowing and power spectrum stage (holds the window buffer).

    filterbank : GammatoneKernelBank
        Kernel bank (holds ``fc`` and the kernel matrix buffers).

    num_channels : int
        Number of output channels.

    Examples
    --------
    >>> import torch
    >>> from torch_erbpower import ERBPower
    >>> model = ERBPower(fs=16000)
    >>> t = torch.arange(16000, dtype=torch.float64) / 16000
    >>> audio = torch.sin(2 * torch.pi * 1000 * t)
    >>> power, fc, times = model(audio)
    >>> power.shape, fc.shape, times.shape
    (torch.Size([63, 101]), torch.Size([63]), torch.Size([101]))

    Notes
    -----
    The window itself acts like a gammatone filter of bandwidth :math:`b_0`.
    Convolving its response with a kernel of bandwidth
    :math:`\sqrt{b_c^2 - b_0^2}` gives a net response of nominal bandwidth
    :math:`b_c`: exact in spectral variance, close in shape at low and high
    centre frequencies, within a few dB in between. See
    :func:`~torch_erbpower.common.filterbanks.kernel_response_check`.

    See Also
    --------
    erbpower : Functional interface.
    GammatoneKernelBank : ERB remapping stage.
    """

    def __init__(self,
                 fs: Optional[float] = None,
                 fc: Optional[torch.Tensor] = None,
                 hop_size: float = DEFAULT_HOP_SIZE,
                 bw_factor: float = DEFAULT_BW_FACTOR,
                 dtype: torch.dtype = torch.float64,
                 return_stages: bool = False):
        super().__init__()

        self.config = ERBPowerConfig(fs=fs, fc=fc, hop_size=hop_size, bw_factor=bw_factor).resolve(dtype=dtype)
        self.fs = self.config.fs
        self.hop_size = self.config.hop_size
        self.bw_factor = self.config.bw_factor
        self.dtype = dtype
        self.return_stages = return_stages

        # Stage 1-2: window sized on the ERD of the lowest channel
        window, self.wsize = design_window(self.fs, dtype=dtype)
        self.spectrum = FramePowerSpectrum(window)

        # Stage 3: kernel bank
        self.filterbank = GammatoneKernelBank(self.fs, self.wsize, self.config.fc,
                                              bw_factor=self.bw_factor, dtype=dtype)
        self.num_channels = self.filterbank.num_channels

        nyquist = self.fs / 2
        n_above = int((self.filterbank.fc > nyquist).sum().item())
        if n_above > 0:
            warnings.warn(f"{n_above} channel(s) above Nyquist ({nyquist:.0f} Hz): "
                          f"their kernels lie outside the analysed band")

    @property
    def window(self) -> torch.Tensor:
        """Analysis window, shape (wsize,)."""
        return self.spectrum.window

    @property
    def fc(self) -> torch.Tensor:
        """Channel centre frequencies in Hz, shape (num_channels,)."""
        return self.filterbank.fc

    def forward(self, x: torch.Tensor) -> Union[Tuple[torch.Tensor, torch.Tensor, torch.Tensor],
                                                Tuple[torch.Tensor, torch.Tensor, torch.Tensor, Dict[str, Any]]]:
        r"""
        Compute the ERB power spectrogram of a signal.

        Parameters
        ----------
        x : torch.Tensor
            Audio signal, shape (T,). Row or column matrices (1, T) / (T, 1)
            are accepted; converted to ``self.dtype`` on the module's device.

        Returns
        -------
        power : torch.Tensor
            Power spectrogram, shape (num_channels, n_frames), non-negative.

        fc : torch.Tensor
            Channel centre frequencies in Hz, shape (num_channels,).

        t : torch.Tensor
            Analysis instants in seconds, shape (n_frames,).

        stages : dict
            Only if ``return_stages=True``:

            - ``'power_spectrum'``: FFT power spectrum (W/2, n_frames)
            - ``'start_samples'``: frame start indices (n_frames,)
            - ``'offset'``: leading zero padding in samples

        Raises
        ------
        ShapeError
            If ``x`` is not 1-D.
        """
        x = as_vector(x, name="signal").to(device=self.window.device, dtype=self.dtype)

        # Align analysis instants with the window power centroid
        x, offset = pad_to_centroid(x, self.window)

        # Matrix of windowed slices of signal -> power spectrum
        fr, start_samples = frames(x, self.wsize, self.config.hop_samples)
        pwrspect = self.spectrum(fr)
        del fr

        # Weighted sum of power coefficients per channel
        power = self.filterbank(pwrspect)

        fc = self.filterbank.fc.clone()
        t = start_samples.to(self.dtype) / self.fs

        if self.return_stages:
            stages = {'power_spectrum': pwrspect,
                      'start_samples': start_samples,
                      'offset': offset}
            return power, fc, t, stages
        return power, fc, t

    def extra_repr(self) -> str:
        return (f"fs={self.fs}, num_channels={self.num_channels}, wsize={self.wsize}, "
                f"hop_size={self.hop_size}, bw_factor={self.bw_factor}, "
                f"return_stages={self.return_stages}")


def erbpower(x: torch.Tensor,
             fs: Optional[float] = None,
             fc: Optional[torch.Tensor] = None,
             hop_size: float = DEFAULT_HOP_SIZE,
             bw_factor: float = DEFAULT_BW_FACTOR,
             dtype: torch.dtype = torch.float64) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    r"""
    FFT-based cochlear power spectrogram.

    Functional wrapper around :class:`ERBPower`; the module is built on the
    signal's device.

    Parameters
    ----------
    x : torch.Tensor
        Audio signal, shape (T,).

    fs : float
        Sampling rate in Hz. Required.

    fc : torch.Tensor, optional
        Channel centre frequencies in Hz. Default: 1/2-ERB spaced, 30 Hz - 16 kHz.

    hop_size : float, optional
        Interval between analyses in seconds. Default: 0.01.

    bw_factor : float, optional
        Factor applied to filter bandwidths. Default: 1.0.

    dtype : torch.dtype, optional
        Data type for computations. Default: torch.float64.

    Returns
    -------
    power : torch.Tensor
        Spectrogram, shape (num_channels, n_frames).

    fc : torch.Tensor
        Channel frequencies in Hz, shape (num_channels,).

    t : torch.Tensor
        Times in seconds, shape (n_frames,).

    Examples
    --------
    >>> import torch
    >>> from torch_erbpower import erbpower
    >>> power, fc, t = erbpower(torch.randn(44100), fs=44100)
    >>> power.shape
    torch.Size([77, 101])
    """
    model = ERBPower(fs=fs, fc=fc, hop_size=hop_size, bw_factor=bw_factor, dtype=dtype)
    if isinstance(x, torch.Tensor):
        model = model.to(x.device)
    return model(x)
