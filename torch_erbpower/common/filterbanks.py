"""
Auditory Scales, Analysis Window & ERB Kernel Bank
==================================================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the spectral building blocks of the ERB power
spectrogram: ERB-scale unit conversions, the gammatone-shaped FFT analysis
window, the frame power spectrum, and the bank of gammatone power transfer
functions used to remap a linear-frequency power spectrum onto ERB-spaced
auditory channels.

The FFT window behaves like the impulse response of a "0 Hz" cochlear channel
(bandwidth :math:`b_0`). Each output channel is a weighted sum of FFT power
coefficients, the weights being the power transfer function of a gammatone
with bandwidth :math:`\\sqrt{b^2 - b_0^2}`, so that the cascade of window and
kernel approximates a gammatone filter of the target bandwidth :math:`b`.

References
----------
.. [1] B. R. Glasberg and B. C. J. Moore, "Derivation of auditory filter shapes
       from notched-noise data," *Hearing Research*, vol. 47, no. 1-2,
       pp. 103-138, 1990.

.. [2] W. M. Hartmann, *Signals, Sound, and Sensation*. New York: AIP Press,
       1997.

.. [3] P. Majdak, C. Hollomey, and R. Baumgartner, "AMT 1.x: A toolbox for
       reproducible research in auditory modeling," *Acta Acustica*, vol. 6,
       p. 19, 2022, doi: 10.1051/aacus/2022011.
"""

import math
from typing import Optional, Tuple, Union

import numpy as np
import torch
import torch.nn as nn
from scipy import signal as scipy_signal

from torch_erbpower.common.errors import DomainError, InvalidArgumentError
from torch_erbpower.common.filters import as_vector, gtwindow

# ------------------------------------------------- Constants ------------------------------------------------

BW0 = 24.7              # Hz - ERB of the "0 Hz" channel (base of the ERB formula)
B0 = BW0 / 0.982        # Hz - gammatone b parameter of that channel (Hartmann, 1997)
ERD = 0.495 / B0        # s - equivalent rectangular duration of its impulse response

# ------------------------------------------------- Utilities ------------------------------------------------

def erb(f: Union[torch.Tensor, float]) -> Union[torch.Tensor, float]:
    r"""
    Equivalent rectangular bandwidth (ERB) at a given frequency.

    Computes the auditory filter bandwidth in Hz according to Glasberg and
    Moore (1990):

    .. math::
       \text{ERB}(f) = 24.7 \cdot \left(4.37 \frac{f}{1000} + 1\right)

    Parameters
    ----------
    f : torch.Tensor or float
        Frequencies in Hz. Any shape.

    Returns
    -------
    torch.Tensor or float
        ERB bandwidths in Hz, same shape (and type) as input.

    Examples
    --------
    >>> import torch
    >>> erb(torch.tensor([100.0, 1000.0, 4000.0]))
    tensor([ 35.4939, 132.6390, 456.4560])

    Notes
    -----
    At 0 Hz the formula gives :math:`24.7` Hz, the bandwidth :data:`BW0` of
    the "0 Hz" channel modelled by the FFT analysis window.
    """
    return BW0 * (4.37 * f / 1000.0 + 1.0)


def erbfromhz(f: Union[torch.Tensor, float]) -> torch.Tensor:
    r"""
    Convert frequency in Hz to ERB-rate (number of ERBs below ``f``).

    .. math::
       \text{ERB-rate}(f) = 9.2645 \cdot \ln(1 + 0.00437 f)

    Parameters
    ----------
    f : torch.Tensor or float
        Frequencies in Hz.

    Returns
    -------
    torch.Tensor
        ERB-rate values (Cams), same shape as input.

    See Also
    --------
    erbtohz : Inverse transformation.
    """
    if not isinstance(f, torch.Tensor):
        f = torch.tensor(f, dtype=torch.float64)
    return 9.2645 * torch.log(1.0 + f * 0.00437)


def erbtohz(e: Union[torch.Tensor, float]) -> torch.Tensor:
    r"""
    Convert ERB-rate to frequency in Hz.

    .. math::
       f = \frac{1}{0.00437} \left( e^{\frac{\text{ERB-rate}}{9.2645}} - 1 \right)

    Parameters
    ----------
    e : torch.Tensor or float
        ERB-rate values (Cams).

    Returns
    -------
    torch.Tensor
        Frequencies in Hz, same shape as input.

    See Also
    --------
    erbfromhz : Forward transformation.
    """
    if not isinstance(e, torch.Tensor):
        e = torch.tensor(e, dtype=torch.float64)
    return (1.0 / 0.00437) * (torch.exp(e / 9.2645) - 1.0)


def erbspace(flow: float,
             fhigh: float,
             n: int,
             device: Optional[torch.device] = None,
             dtype: torch.dtype = torch.float64) -> torch.Tensor:
    r"""
    Frequencies equally spaced on the ERB-rate scale.

    .. math::
       f_i = \text{erbtohz}\left(e_{\text{low}} + i \frac{e_{\text{high}} - e_{\text{low}}}{n - 1}\right),
       \quad i = 0, \ldots, n-1

    Parameters
    ----------
    flow : float
        Lowest frequency in Hz.

    fhigh : float
        Highest frequency in Hz.

    n : int
        Number of frequencies. ``n = 1`` returns ``[flow]``.

    device : torch.device, optional
        Device of the output. Default: None (CPU).

    dtype : torch.dtype, optional
        Data type of the output. Default: torch.float64.

    Returns
    -------
    torch.Tensor
        Frequencies in Hz, shape (n,), monotonically increasing when
        ``fhigh > flow``.

    Examples
    --------
    >>> fc = erbspace(30.0, 16000.0, 77)
    >>> fc.shape, round(fc[0].item()), round(fc[-1].item())
    (torch.Size([77]), 30, 16000)
    """
    erb_low = erbfromhz(float(flow))
    erb_high = erbfromhz(float(fhigh))

    # linspace computed on CPU in float64 then transferred (MPS lacks float64)
    erb_vals = torch.linspace(erb_low.item(), erb_high.item(), n, dtype=torch.float64)

    return erbtohz(erb_vals).to(device=device, dtype=dtype)


def erb_channel_frequencies(flow: float,
                            fhigh: float,
                            n: Optional[int] = None,
                            device: Optional[torch.device] = None,
                            dtype: torch.dtype = torch.float64) -> torch.Tensor:
    r"""
    Channel centre frequencies between ``flow`` and ``fhigh``.

    When ``n`` is not given, channels are spaced at half-ERB intervals:

    .. math::
       n = \text{round}\big(2 \cdot (\text{ERB-rate}(f_{\text{high}}) - \text{ERB-rate}(f_{\text{low}}))\big)

    Parameters
    ----------
    flow, fhigh : float
        Lowest and highest centre frequency in Hz.

    n : int, optional
        Number of channels. Default: None (half-ERB spacing).

    device : torch.device, optional
        Device of the output.

    dtype : torch.dtype, optional
        Data type of the output. Default: torch.float64.

    Returns
    -------
    torch.Tensor
        Centre frequencies in Hz, shape (n,).

    Raises
    ------
    InvalidArgumentError
        If the range holds no channel.
    """
    if n is None:
        span = (erbfromhz(float(fhigh)) - erbfromhz(float(flow))).item()
        n = int(math.floor(2.0 * span + 0.5))
    if n < 1 or fhigh < flow:
        raise InvalidArgumentError(f"No channel fits between {flow:.1f} Hz and {fhigh:.1f} Hz")
    return erbspace(flow, fhigh, n, device=device, dtype=dtype)


def default_channel_frequencies(fs: float,
                                device: Optional[torch.device] = None,
                                dtype: torch.dtype = torch.float64) -> torch.Tensor:
    r"""
    Default channel centre frequencies for a given sampling rate.

    Channels are spaced at 1/2-ERB intervals from 30 Hz up to 16 kHz, or up to
    half an ERB below the Nyquist frequency if that is lower:

    .. math::
       f_{\text{high}} = \min\left(16000, \frac{f_s}{2} - \frac{\text{ERB}(f_s/2)}{2}\right)

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    device : torch.device, optional
        Device of the output.

    dtype : torch.dtype, optional
        Data type of the output. Default: torch.float64.

    Returns
    -------
    torch.Tensor
        Centre frequencies in Hz. At 44.1 kHz: 77 channels, 30 Hz - 16 kHz.
    """
    lo = 30.0
    hi = min(16000.0, fs / 2 - erb(fs / 2) / 2)
    return erb_channel_frequencies(lo, hi, device=device, dtype=dtype)

# ---------------------------------------------- Analysis Window ----------------------------------------------

def window_size(fs: float) -> int:
    r"""
    FFT size of the analysis window.

    Smallest power of two not shorter than twice the equivalent rectangular
    duration of the "0 Hz" channel:

    .. math::
       W = 2^{\lceil \log_2(2 \cdot \text{ERD} \cdot f_s) \rceil}, \qquad
       \text{ERD} = \frac{0.495}{b_0} \approx 19.7 \text{ ms}

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    Returns
    -------
    int
        Window size in samples (1024 at 16 kHz, 2048 at 44.1 kHz).
    """
    return int(2 ** math.ceil(math.log2(2.0 * ERD * fs)))


def design_window(fs: float,
                  device: Optional[torch.device] = None,
                  dtype: torch.dtype = torch.float64) -> Tuple[torch.Tensor, int]:
    r"""
    Analysis window for the ERB power spectrogram.

    The window is the time-reversed envelope of a gammatone impulse response
    with the parameters of the lowest cochlear channel (:math:`b_0`), fitted
    into :func:`window_size` samples:

    .. math::
       w = \text{gtwindow}\left(W, \frac{W}{\text{ERD} \cdot f_s}\right)

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    device : torch.device, optional
        Device of the window.

    dtype : torch.dtype, optional
        Data type of the window. Default: torch.float64.

    Returns
    -------
    window : torch.Tensor
        Window, shape (W,), unit peak.

    wsize : int
        Window size W.
    """
    wsize = window_size(fs)
    window = gtwindow(wsize, wsize / (ERD * fs), dtype=dtype, device=device)
    return window, wsize


class FramePowerSpectrum(nn.Module):
    r"""
    One-sided power spectrum of windowed frames.

    Each column of a frame matrix is multiplied by the analysis window and
    Fourier transformed; the squared magnitude of the first :math:`W/2` bins
    (DC up to, but excluding, Nyquist) is returned.

    .. math::
       P[k, j] = \left| \sum_{n=0}^{W-1} w[n]\, x_j[n]\, e^{-2\pi i k n / W} \right|^2,
       \quad k = 0, \ldots, W/2 - 1

    Parameters
    ----------
    window : torch.Tensor
        Analysis window, shape (W,). Registered as buffer.

    Attributes
    ----------
    window : torch.Tensor
        Analysis window, shape (W,).

    wsize : int
        Window size W.

    Examples
    --------
    >>> import torch
    >>> from torch_erbpower.common.filterbanks import design_window, FramePowerSpectrum
    >>> window, wsize = design_window(16000)
    >>> spectrum = FramePowerSpectrum(window)
    >>> fr = torch.randn(wsize, 10, dtype=torch.float64)
    >>> spectrum(fr).shape
    torch.Size([512, 10])
    """

    def __init__(self, window: torch.Tensor):
        super().__init__()
        self.register_buffer('window', window)
        self.wsize = window.shape[-1]

    def forward(self, fr: torch.Tensor) -> torch.Tensor:
        r"""
        Compute the power spectrum of each frame.

        Parameters
        ----------
        fr : torch.Tensor
            Frame matrix, shape (W, n_frames).

        Returns
        -------
        torch.Tensor
            Power spectrum, shape (W/2, n_frames), non-negative.
        """
        windowed = fr * self.window.unsqueeze(1)
        spectrum = torch.fft.rfft(windowed, n=self.wsize, dim=0)
        power = spectrum.real ** 2 + spectrum.imag ** 2
        return power[: self.wsize // 2]

    def extra_repr(self) -> str:
        return f"wsize={self.wsize}"

# ------------------------------------------------ Kernel Bank -------------------------------------------------

def gammatone_power_tf(f: torch.Tensor,
                       fc: torch.Tensor,
                       b: torch.Tensor,
                       order: int = 4) -> torch.Tensor:
    r"""
    Power transfer function of a gammatone filter.

    .. math::
       H(f) = \left| \frac{1}{\big(i (f - f_c) + b\big)^{n}} \right|^2
            = \big((f - f_c)^2 + b^2\big)^{-n}

    Evaluated in real arithmetic; broadcasting follows torch rules, so
    ``f`` of shape (K, 1) against ``fc``, ``b`` of shape (1, C) gives (K, C).

    Parameters
    ----------
    f : torch.Tensor
        Frequencies in Hz.

    fc : torch.Tensor
        Centre frequencies in Hz.

    b : torch.Tensor
        Gammatone bandwidth parameters in Hz.

    order : int, optional
        Filter order n. Default: 4.

    Returns
    -------
    torch.Tensor
        Power response (unnormalized).
    """
    return ((f - fc) ** 2 + b ** 2) ** (-order)


def kernel_bandwidths(fc: torch.Tensor, bw_factor: float = 1.0) -> Tuple[torch.Tensor, torch.Tensor]:
    r"""
    Target and kernel gammatone bandwidths per channel.

    .. math::
       b_c = \frac{\text{ERB}(f_c)}{0.982} \cdot \text{bw\_factor}, \qquad
       b'_c = \sqrt{b_c^2 - b_0^2}

    Convolving the "0 Hz" response of the FFT window (bandwidth :math:`b_0`)
    with a kernel of bandwidth :math:`b'_c` gives a response of nominal
    bandwidth :math:`b_c`.

    Parameters
    ----------
    fc : torch.Tensor
        Centre frequencies in Hz, shape (C,).

    bw_factor : float, optional
        Factor applied to the target bandwidths. Default: 1.0.

    Returns
    -------
    b : torch.Tensor
        Target bandwidths :math:`b_c`, shape (C,).

    bb : torch.Tensor
        Kernel bandwidths :math:`b'_c`, shape (C,).

    Raises
    ------
    DomainError
        If :math:`b_c \le b_0` for any channel. The kernel bandwidth would be
        imaginary (or zero); this happens for ``bw_factor < 1`` at low centre
        frequencies. Also raised for non-finite bandwidths (NaN or infinite
        centre frequencies).
    """
    b = erb(fc) / 0.982 * bw_factor
    invalid = ~torch.isfinite(b) | (b <= B0)
    if invalid.any():
        bad = fc[invalid].tolist()
        raise DomainError(f"Channel bandwidth must exceed the analysis window bandwidth "
                          f"(b0={B0:.2f} Hz) with bw_factor={bw_factor}; "
                          f"offending centre frequencies: {[round(v, 2) for v in bad]} Hz")
    bb = torch.sqrt(b ** 2 - B0 ** 2)
    return b, bb


def erb_kernel_bank(fs: float,
                    wsize: int,
                    fc: torch.Tensor,
                    bw_factor: float = 1.0,
                    normalize: bool = True) -> torch.Tensor:
    r"""
    Matrix of ERB-weighted gammatone power transfer functions.

    Column :math:`c` holds the power transfer function of a gammatone with
    bandwidth :math:`b'_c` (see :func:`kernel_bandwidths`) sampled at
    :math:`f_k = k f_s / W` for :math:`k = 1, \ldots, W/2`, scaled so that the
    column sums to :math:`\text{ERB}(f_c)`:

    .. math::
       K[k, c] = \frac{\text{ERB}(f_c)}{\sum_{k'} H_c(f_{k'})} H_c(f_k)

    The whole matrix is then divided by its maximum (``normalize=True``),
    which preserves the relative channel weights.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    wsize : int
        FFT size W.

    fc : torch.Tensor
        Centre frequencies in Hz, shape (C,). Device and dtype of the output
        follow this tensor.

    bw_factor : float, optional
        Factor applied to channel bandwidths. Default: 1.0.

    normalize : bool, optional
        Divide by the global maximum. Default: True. With False, each column
        sums to :math:`\text{ERB}(f_c)`.

    Returns
    -------
    torch.Tensor
        Kernel matrix, shape (W/2, C), non-negative.

    Raises
    ------
    DomainError
        See :func:`kernel_bandwidths`.

    Examples
    --------
    >>> import torch
    >>> fc = torch.tensor([100.0, 1000.0], dtype=torch.float64)
    >>> k = erb_kernel_bank(16000, 1024, fc, normalize=False)
    >>> torch.allclose(k.sum(dim=0), erb(fc))
    True
    """
    _, bb = kernel_bandwidths(fc, bw_factor)

    k = torch.arange(1, wsize // 2 + 1, dtype=fc.dtype, device=fc.device)
    f = (k * fs / wsize).unsqueeze(1)                               # (W/2, 1)

    wfunct = gammatone_power_tf(f, fc.unsqueeze(0), bb.unsqueeze(0))  # (W/2, C)

    # Adjust so that each column sums to the ERB of its channel
    wfunct = wfunct * (erb(fc) / wfunct.sum(dim=0)).unsqueeze(0)

    if normalize:
        wfunct = wfunct / wfunct.max()

    return wfunct


class GammatoneKernelBank(nn.Module):
    r"""
    ERB kernel bank remapping a linear power spectrum onto auditory channels.

    Holds the kernel matrix of :func:`erb_kernel_bank` and projects FFT power
    spectra onto it:

    .. math::
       C = K^\top P

    where :math:`P` has shape (W/2, n_frames) and :math:`C` has shape
    (n_channels, n_frames). Each output channel is thus a weighted sum of power
    spectrum coefficients with a channel-dependent kernel, an operation similar
    to a convolution whose kernel widens with centre frequency.

    Parameters
    ----------
    fs : float
        Sampling rate in Hz.

    wsize : int
        FFT size W.

    fc : torch.Tensor
        Channel centre frequencies in Hz, shape (C,).

    bw_factor : float, optional
        Factor applied to channel bandwidths. Default: 1.0.

    dtype : torch.dtype, optional
        Data type of the kernels. Default: torch.float64.

    Attributes
    ----------
    fc : torch.Tensor
        Centre frequencies, shape (C,). Registered as buffer.

    b : torch.Tensor
        Target gammatone bandwidths :math:`b_c`, shape (C,). Buffer.

    bb : torch.Tensor
        Kernel bandwidths :math:`\sqrt{b_c^2 - b_0^2}`, shape (C,). Buffer.

    kernels : torch.Tensor
        Kernel matrix, shape (W/2, C), peak value 1. Buffer.

    num_channels : int
        Number of channels C.

    Examples
    --------
    >>> import torch
    >>> from torch_erbpower.common.filterbanks import GammatoneKernelBank, erbspace
    >>> bank = GammatoneKernelBank(fs=16000, wsize=1024, fc=erbspace(100, 4000, 40))
    >>> pwr = torch.rand(512, 25, dtype=torch.float64)
    >>> bank(pwr).shape
    torch.Size([40, 25])
    """

    def __init__(self,
                 fs: float,
                 wsize: int,
                 fc: torch.Tensor,
                 bw_factor: float = 1.0,
                 dtype: torch.dtype = torch.float64):
        super().__init__()

        self.fs = fs
        self.wsize = wsize
        self.bw_factor = bw_factor
        self.dtype = dtype

        fc = as_vector(fc, name="fc").to(dtype=dtype)
        b, bb = kernel_bandwidths(fc, bw_factor)

        self.register_buffer('fc', fc)
        self.register_buffer('b', b)
        self.register_buffer('bb', bb)
        self.register_buffer('kernels', erb_kernel_bank(fs, wsize, fc, bw_factor))
        self.num_channels = len(fc)

    def forward(self, power_spectrum: torch.Tensor) -> torch.Tensor:
        r"""
        Project power spectra onto the kernel bank.

        Parameters
        ----------
        power_spectrum : torch.Tensor
            One-sided power spectrum, shape (W/2, n_frames).

        Returns
        -------
        torch.Tensor
            Channel powers, shape (n_channels, n_frames).
        """
        return torch.matmul(self.kernels.transpose(0, 1), power_spectrum)

    def extra_repr(self) -> str:
        return (f"num_channels={self.num_channels}, fs={self.fs}, wsize={self.wsize}, "
                f"fc_range=({self.fc[0].item():.1f}, {self.fc[-1].item():.1f}) Hz, "
                f"bw_factor={self.bw_factor}")

# ------------------------------------------------ Diagnostics -------------------------------------------------

def kernel_response_check(fc: float,
                          fs: float,
                          wsize: Optional[int] = None,
                          bw_factor: float = 1.0) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    r"""
    Compare a channel's effective response with its target gammatone response.

    The effective response of a channel is the kernel power transfer function
    (bandwidth :math:`b'_c`) convolved with the "0 Hz" response of the FFT
    window (bandwidth :math:`b_0`). This helper computes it together with the
    target response (bandwidth :math:`b_c`) so that the approximation can be
    inspected offline. It is not used on the spectrogram path.

    Parameters
    ----------
    fc : float
        Channel centre frequency in Hz. Must lie below Nyquist.

    fs : float
        Sampling rate in Hz.

    wsize : int, optional
        FFT size defining the frequency grid :math:`f_k = k f_s / W`,
        :math:`k = 1, \ldots, W/2`. Default: None (:func:`window_size`). A
        larger value gives a finer grid.

    bw_factor : float, optional
        Factor applied to the channel bandwidth. Default: 1.0.

    Returns
    -------
    f : np.ndarray
        Frequency grid in Hz, shape (W/2,).

    target : np.ndarray
        Target gammatone power response, peak-normalized, shape (W/2,).

    effective : np.ndarray
        Convolved kernel and window response, shifted so its peak sits at
        ``fc``, peak-normalized, shape (W/2,).

    Notes
    -----
    The approximation is close at low centre frequencies (window response
    dominates) and at high centre frequencies (kernel dominates). In between
    (around 100-300 Hz) the convolved shape is somewhat wider at the peak and
    steeper in the skirts than the target, because the bandwidths add in
    quadrature only in terms of spectral variance.
    """
    if wsize is None:
        wsize = window_size(fs)
    if not 0 < fc < fs / 2:
        raise DomainError(f"fc must lie in (0, {fs / 2}) Hz, got {fc}")

    fc_t = torch.tensor([float(fc)], dtype=torch.float64)
    b, bb = kernel_bandwidths(fc_t, bw_factor)

    f = torch.arange(1, wsize // 2 + 1, dtype=torch.float64) * fs / wsize
    target = gammatone_power_tf(f, fc_t, b).numpy()                             # target
    window_tf = gammatone_power_tf(f, fc_t, torch.tensor(B0, dtype=torch.float64)).numpy()  # FFT window shape
    kernel_tf = gammatone_power_tf(f, fc_t, bb).numpy()                          # kernel

    effective = scipy_signal.fftconvolve(kernel_tf, window_tf)

    # Shift so that peaks match
    shift = int(math.floor(fc * wsize / fs + 0.5)) - 1
    effective = effective[shift:shift + wsize // 2]

    target = target / target.max()
    effective = np.clip(effective, 0.0, None)
    effective = effective / effective.max()

    return f.numpy(), target, effective
