"""
Windowing and Framing Utilities
===============================

PyTorch-native helpers used to cut a signal into analysis frames: the
gammatone-shaped analysis window, the energy centroid used to align frames on
their analysis instants, and the overlapping frame extractor.

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Contents
--------

**Input Validation:**
    - `as_vector`: Coerce row/column vectors to 1-D tensors, reject 2-D input

**Windows:**
    - `gtwindow`: Time-reversed gammatone envelope window
    - `centroid`: Energy-weighted centroid position of a vector

**Framing:**
    - `pad_to_centroid`: Zero-pad a signal so frames are centred on the window centroid
    - `frames`: Overlapping frame matrix with (possibly fractional) hop size

Design Philosophy
-----------------
- **GPU-Friendly**: All operations use PyTorch tensors for CUDA/MPS acceleration
- **Vectorized**: Frames are gathered with a single index tensor, no Python loops
- **Gradient-Safe**: No `.detach()` or `.numpy()` on the signal path

See Also
--------
- `torch_erbpower.common.filterbanks`: ERB scale, analysis window design and kernels
"""

import math
from typing import Optional, Tuple, Union

import torch
import torch.nn.functional as F

from torch_erbpower.common.errors import ShapeError

# ------------------------------------------------ Validation -----------------------------------------------

def as_vector(x: Union[torch.Tensor, list, tuple, float], name: str = "signal") -> torch.Tensor:
    """
    Return ``x`` as a 1-D tensor.

    Scalars become length-1 vectors and row or column matrices (shape ``(1, N)``
    or ``(N, 1)``) are flattened. Anything genuinely multi-dimensional is rejected.

    Parameters
    ----------
    x : torch.Tensor, array-like or float
        Input values.

    name : str, optional
        Name used in the error message. Default: ``'signal'``.

    Returns
    -------
    torch.Tensor
        1-D view (or copy) of the input.

    Raises
    ------
    ShapeError
        If ``x`` has more than one non-singleton dimension.
    """
    if not isinstance(x, torch.Tensor):
        x = torch.as_tensor(x)

    if x.dim() == 0:
        return x.reshape(1)
    if x.dim() == 2 and 1 in x.shape:
        return x.reshape(-1)
    if x.dim() != 1:
        raise ShapeError(f"{name} should be 1D, got shape {tuple(x.shape)}")
    return x

# -------------------------------------------------- Windows ------------------------------------------------

def gtwindow(n: int,
             b: float = 2.0,
             order: int = 4,
             dtype: torch.dtype = torch.float64,
             device: Optional[torch.device] = None) -> torch.Tensor:
    r"""
    Window shaped like a time-reversed gammatone envelope.

    The gammatone envelope :math:`t^{n-1} e^{-2\pi b t}` is sampled over
    :math:`t \in (0, 1]`, reversed in time so that the window rises slowly and
    falls abruptly, and scaled to a unit peak.

    .. math::
       w[k] = \frac{g[n-1-k]}{\max g}, \qquad
       g[k] = t_k^{\,\text{order}-1} e^{-2\pi b t_k}, \quad t_k = \frac{k+1}{n}

    Parameters
    ----------
    n : int
        Window length in samples.

    b : float, optional
        Bandwidth parameter in cycles per window length. Larger values give a
        shorter envelope. Default: 2.0.

    order : int, optional
        Gammatone order. Default: 4.

    dtype : torch.dtype, optional
        Data type of the window. Default: torch.float64.

    device : torch.device, optional
        Device of the window. Default: None (CPU).

    Returns
    -------
    torch.Tensor
        Window of shape (n,), peak value 1.

    Examples
    --------
    >>> w = gtwindow(1024, 2.3)
    >>> w.shape, w.max().item()
    (torch.Size([1024]), 1.0)
    """
    t = torch.arange(1, n + 1, dtype=dtype, device=device) / n
    y = t ** (order - 1) * torch.exp(-2.0 * math.pi * b * t)
    y = torch.flip(y, dims=[0])
    return y / y.max()


def centroid(x: torch.Tensor) -> torch.Tensor:
    r"""
    Centroid position of a non-negative vector.

    .. math::
       c = \frac{\sum_k k\, x[k]}{\sum_k x[k]}

    with 0-based indices :math:`k`.

    Parameters
    ----------
    x : torch.Tensor
        Weights, shape (..., N). Usually an energy profile such as ``window ** 2``.

    Returns
    -------
    torch.Tensor
        Centroid index (fractional), shape (...).
    """
    k = torch.arange(x.shape[-1], dtype=x.dtype, device=x.device)
    return torch.sum(k * x, dim=-1) / torch.sum(x, dim=-1)

# -------------------------------------------------- Framing ------------------------------------------------

def pad_to_centroid(x: torch.Tensor, window: torch.Tensor) -> Tuple[torch.Tensor, int]:
    """
    Zero-pad a signal so each frame is centred on the window's energy centroid.

    ``offset = round(centroid(window ** 2))`` zeros are prepended and
    ``len(window) - offset`` zeros are appended. With this padding, a frame
    starting at padded index ``s`` has its energy centre on original sample ``s``.

    Parameters
    ----------
    x : torch.Tensor
        Signal, shape (T,).

    window : torch.Tensor
        Analysis window, shape (W,).

    Returns
    -------
    padded : torch.Tensor
        Padded signal, shape (T + W,).

    offset : int
        Number of leading zeros.
    """
    wsize = window.shape[-1]
    offset = int(math.floor(centroid(window ** 2).item() + 0.5))
    return F.pad(x, (offset, wsize - offset)), offset


def frames(x: torch.Tensor,
           frame_length: int,
           hop_length: float) -> Tuple[torch.Tensor, torch.Tensor]:
    r"""
    Cut a signal into overlapping frames.

    Frame :math:`k` starts at sample :math:`s_k = \text{round}(k \cdot h)` where
    :math:`h` is the hop length. The hop may be fractional (e.g. 10 ms at
    22050 Hz); start indices are rounded so the average hop is exact.

    .. math::
       N_{\text{frames}} = \left\lfloor \frac{T - L}{h} \right\rfloor + 1

    Parameters
    ----------
    x : torch.Tensor
        Signal, shape (T,). Must satisfy ``T >= frame_length``.

    frame_length : int
        Frame length :math:`L` in samples.

    hop_length : float
        Hop :math:`h` in samples, strictly positive.

    Returns
    -------
    fr : torch.Tensor
        Frame matrix, shape (frame_length, n_frames). One frame per column.

    start_samples : torch.Tensor
        Start index of each frame (0-based, long), shape (n_frames,).

    Raises
    ------
    ValueError
        If the hop is not positive or the signal is shorter than one frame.
    """
    if hop_length <= 0:
        raise ValueError(f"hop_length must be positive, got {hop_length}")
    n_samples = x.shape[-1]
    if n_samples < frame_length:
        raise ValueError(f"Signal has {n_samples} samples, shorter than one frame ({frame_length})")

    n_frames = int(math.floor((n_samples - frame_length) / hop_length)) + 1

    # Round half up so that start indices do not depend on banker's rounding.
    # Computed on CPU in float64 (MPS has no float64 support)
    k = torch.arange(n_frames, dtype=torch.float64)
    start_samples = torch.floor(k * hop_length + 0.5).long().to(x.device)

    # (frame_length, n_frames) gather indices
    idx = torch.arange(frame_length, device=x.device).unsqueeze(1) + start_samples.unsqueeze(0)

    return x[idx], start_samples
