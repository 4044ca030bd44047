"""
ERB Power Spectrogram - Test Suite

Contents:
1. test_window_size: FFT size is the smallest power of two above 2 x ERD x fs
2. test_analysis_window: gammatone window shape and centroid offset
3. test_frame_count: frame count, times and start samples for several lengths and hops
4. test_zero_signal: zero input of any length gives an all-zero spectrogram
5. test_kernel_column_sums: kernel columns sum to ERB(fc) before max normalization
6. test_bandwidth_factor: wider channels with unchanged column sums
7. test_default_channels: default channel grid at 16 and 44.1 kHz
8. test_sinusoid_response: excitation pattern of a pure tone (with figure)
9. test_click_timing: analysis instants align with the window energy centroid
10. test_input_shapes: row/column vectors equal the 1-D result
11. test_errors: exception taxonomy and warnings

Figures generated:
- erbpower_sinusoid.png: Spectrogram of a 1.1 kHz tone and its excitation pattern
"""

import math
import warnings

import numpy as np
import pytest
import torch
import matplotlib.pyplot as plt
from pathlib import Path

from torch_erbpower import (ERBPower, erbpower, erb, erbfromhz, erb_kernel_bank,
                            kernel_bandwidths, default_channel_frequencies,
                            erb_channel_frequencies, window_size, design_window,
                            centroid, InvalidArgumentError, ShapeError, DomainError)
from torch_erbpower.common.filterbanks import ERD


TEST_FIGURES_DIR = Path(__file__).parent.parent.parent / 'test_figures'


# ------------------------------------------------ Window & Framing ------------------------------------------------

@pytest.mark.parametrize("fs", [8000, 16000, 22050, 32000, 44100, 48000, 96000])
def test_window_size(fs):
    """wsize is a power of two, >= 2*ERD*fs, and half of it is not."""
    wsize = window_size(fs)
    assert wsize & (wsize - 1) == 0
    assert wsize >= 2 * ERD * fs
    assert wsize / 2 < 2 * ERD * fs
    print(f"  ✓ fs = {fs:6d} Hz -> wsize = {wsize} ({1000 * wsize / fs:.1f} ms)")


def test_window_size_reference_values():
    assert window_size(16000) == 1024
    assert window_size(44100) == 2048


def test_analysis_window():
    """Unit peak, late peak (slow rise, abrupt fall), centroid-based offset."""
    fs = 16000
    window, wsize = design_window(fs)
    model = ERBPower(fs=fs, return_stages=True)

    assert window.shape == (wsize,)
    assert window.max().item() == pytest.approx(1.0)
    assert torch.all(window >= 0)

    # The reversed envelope peaks in the last part of the window
    assert window.argmax().item() > 0.75 * wsize

    c = centroid(window ** 2).item()
    _, _, _, stages = model(torch.zeros(2000, dtype=torch.float64))
    assert stages['offset'] == int(math.floor(c + 0.5))
    assert 0 < stages['offset'] < wsize

    print(f"  ✓ wsize={wsize}, peak at {window.argmax().item()}, centroid={c:.2f}, offset={stages['offset']}")


@pytest.mark.parametrize("n_samples", [0, 1, 100, 1023, 1024, 5000, 16000])
def test_frame_count(n_samples):
    """n_frames = floor((len(padded) - wsize) / hop) + 1, times = start / fs."""
    fs = 16000
    model = ERBPower(fs=fs, return_stages=True)
    hop = model.config.hop_samples

    power, fc, t, stages = model(torch.randn(n_samples, dtype=torch.float64))

    padded_len = n_samples + model.wsize
    expected = int(math.floor((padded_len - model.wsize) / hop)) + 1
    assert power.shape == (len(fc), expected)
    assert len(t) == expected
    assert len(fc) == model.num_channels
    assert torch.allclose(t, stages['start_samples'].to(torch.float64) / fs)
    assert t[0].item() == 0.0
    print(f"  ✓ {n_samples:5d} samples -> {expected} frames")


def test_fractional_hop():
    """A 10 ms hop at 22.05 kHz (220.5 samples) keeps the exact average rate."""
    fs = 22050
    model = ERBPower(fs=fs, return_stages=True)
    assert model.config.hop_samples == pytest.approx(220.5)

    power, fc, t, stages = model(torch.randn(fs, dtype=torch.float64))
    start = stages['start_samples']

    assert power.shape[1] == 101
    assert start[:5].tolist() == [0, 221, 441, 662, 882]
    assert t[-1].item() == pytest.approx(1.0)


@pytest.mark.parametrize("n_samples", [0, 1, 777, 16000])
def test_zero_signal(n_samples):
    """A zero signal gives an all-zero spectrogram of the right shape."""
    power, fc, t = erbpower(torch.zeros(n_samples), fs=16000)
    assert power.shape == (len(fc), len(t))
    assert torch.count_nonzero(power) == 0


# ------------------------------------------------- Kernel Bank ------------------------------------------------

@pytest.mark.parametrize("fs", [16000, 44100])
@pytest.mark.parametrize("bw_factor", [1.0, 2.0, 3.5])
def test_kernel_column_sums(fs, bw_factor):
    """Before the global max normalization each column sums to ERB(fc)."""
    fc = default_channel_frequencies(fs)
    wsize = window_size(fs)

    raw = erb_kernel_bank(fs, wsize, fc, bw_factor=bw_factor, normalize=False)
    assert raw.shape == (wsize // 2, len(fc))
    assert torch.allclose(raw.sum(dim=0), erb(fc), rtol=1e-9, atol=0.0)

    kernels = erb_kernel_bank(fs, wsize, fc, bw_factor=bw_factor)
    assert kernels.max().item() == pytest.approx(1.0)
    assert torch.all(kernels >= 0)
    # Global scaling keeps the relative channel weights
    assert torch.allclose(kernels * raw.max(), raw, rtol=1e-12, atol=0.0)


def test_bandwidth_factor():
    """Doubling bw_factor widens every kernel; column sums stay ERB(fc)."""
    fs = 44100
    fc = default_channel_frequencies(fs)
    wsize = window_size(fs)

    _, bb1 = kernel_bandwidths(fc, 1.0)
    _, bb2 = kernel_bandwidths(fc, 2.0)
    assert torch.all(bb2 > bb1)

    k1 = erb_kernel_bank(fs, wsize, fc, bw_factor=1.0, normalize=False)
    k2 = erb_kernel_bank(fs, wsize, fc, bw_factor=2.0, normalize=False)
    assert torch.allclose(k1.sum(dim=0), k2.sum(dim=0), rtol=1e-9)

    m1 = ERBPower(fs=fs)
    m2 = ERBPower(fs=fs, bw_factor=2.0)
    assert torch.all(m2.filterbank.bb > m1.filterbank.bb)


def test_default_channels():
    """Half-ERB spaced channels from 30 Hz to min(16 kHz, Nyquist - ERB/2)."""
    fc = default_channel_frequencies(44100)
    assert len(fc) == 77
    assert fc[0].item() == pytest.approx(30.0)
    assert fc[-1].item() == pytest.approx(16000.0)

    fc = default_channel_frequencies(16000)
    assert len(fc) == 63
    assert fc[-1].item() == pytest.approx(8000 - erb(8000.0) / 2)

    # Equal spacing on the ERB-rate scale, about half an ERB
    steps = torch.diff(erbfromhz(fc))
    assert torch.allclose(steps, steps[0].expand_as(steps), rtol=1e-9)
    assert steps[0].item() == pytest.approx(0.5, abs=0.02)

    assert len(ERBPower(fs=44100).fc) == 77


def test_custom_channels():
    fc = erb_channel_frequencies(100.0, 4000.0, n=20)
    model = ERBPower(fs=16000, fc=fc)
    power, fc_out, _ = model(torch.randn(8000, dtype=torch.float64))
    assert power.shape[0] == 20
    assert torch.equal(fc_out, fc)

    # Returned frequencies are a copy
    fc_out[0] = -1.0
    assert model.fc[0].item() == pytest.approx(100.0)


# ------------------------------------------------- Signal Tests ------------------------------------------------

def test_sinusoid_response():
    """A tone peaks in the nearest channel and decays monotonically within +/-3 ERB."""
    TEST_FIGURES_DIR.mkdir(exist_ok=True)

    fs = 16000
    model = ERBPower(fs=fs)
    fc = model.fc
    target = 30
    f0 = fc[target].item()

    n = torch.arange(fs, dtype=torch.float64)
    x = torch.sin(2 * math.pi * f0 * n / fs)
    power, fc, t = model(x)

    # Steady-state frames only
    pattern = power[:, 10:-10].mean(dim=1)
    peak = pattern.argmax().item()

    print("=" * 80)
    print("ERB POWER - SINUSOID RESPONSE")
    print("=" * 80)
    print(f"  f0 = {f0:.1f} Hz, peak channel = {peak} ({fc[peak].item():.1f} Hz)")

    assert peak == target

    erb_distance = (erbfromhz(fc) - erbfromhz(f0)).abs()
    below = [c for c in range(target, -1, -1) if erb_distance[c] <= 3.0]
    above = [c for c in range(target, len(fc)) if erb_distance[c] <= 3.0]
    for side in (below, above):
        levels = pattern[side]
        assert torch.all(levels[1:] < levels[:-1])

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    fig.suptitle(f'ERB Power Spectrogram of a {f0:.0f} Hz tone', fontsize=14, fontweight='bold')

    ax = axes[0]
    db = 10 * torch.log10(power + 1e-12)
    im = ax.pcolormesh(t.numpy(), np.arange(len(fc)), db.numpy(), shading='auto',
                       vmin=db.max().item() - 80)
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Channel')
    ax.set_title('Spectrogram (dB)')
    fig.colorbar(im, ax=ax)

    ax = axes[1]
    ax.semilogx(fc.numpy(), 10 * np.log10(pattern.numpy() / pattern.max().item()), 'b.-')
    ax.axvline(f0, color='r', linestyle='--', label='f0')
    ax.set_xlabel('Channel frequency (Hz)')
    ax.set_ylabel('Level re. peak (dB)')
    ax.set_title('Excitation pattern')
    ax.set_ylim(-100, 5)
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    output = TEST_FIGURES_DIR / 'erbpower_sinusoid.png'
    plt.savefig(output, dpi=300, format='png', bbox_inches='tight')
    plt.close(fig)
    print(f"  ✓ Figure saved: {output}")


def test_click_timing():
    """The power-weighted mean time of a click is the click time."""
    fs = 16000
    n0 = 2000
    x = torch.zeros(4000, dtype=torch.float64)
    x[n0] = 1.0

    power, _, t = erbpower(x, fs=fs, hop_size=2 / fs)
    energy = power.sum(dim=0)
    t_mean = (energy * t).sum() / energy.sum()

    print(f"  Click at {1000 * n0 / fs:.3f} ms, energy centroid at {1000 * t_mean.item():.3f} ms")
    assert abs(t_mean.item() - n0 / fs) < 1.5 / fs


def test_input_shapes():
    """(1, N), (N, 1) and (N,) inputs give the same result."""
    x = torch.randn(3000, dtype=torch.float64)
    model = ERBPower(fs=16000)
    ref, _, _ = model(x)
    for shaped in (x.unsqueeze(0), x.unsqueeze(1)):
        power, _, _ = model(shaped)
        assert torch.equal(power, ref)

    power, _, _ = model(x.numpy().tolist())
    assert torch.allclose(power, ref)


def test_float32():
    x = torch.randn(8000)
    p64, _, _ = erbpower(x.double(), fs=16000)
    p32, _, _ = erbpower(x, fs=16000, dtype=torch.float32)
    assert p32.dtype == torch.float32
    assert torch.allclose(p32.double(), p64, rtol=1e-3, atol=1e-6 * p64.max().item())


# ---------------------------------------------------- Errors ---------------------------------------------------

def test_errors():
    """Exception taxonomy: every error is a ValueError."""
    for exc in (InvalidArgumentError, ShapeError, DomainError):
        assert issubclass(exc, ValueError)

    with pytest.raises(InvalidArgumentError, match="sampling rate"):
        ERBPower()
    with pytest.raises(InvalidArgumentError):
        erbpower(torch.randn(100), fs=None)
    with pytest.raises(InvalidArgumentError):
        ERBPower(fs=0)
    with pytest.raises(InvalidArgumentError):
        ERBPower(fs=-16000)
    with pytest.raises(InvalidArgumentError):
        ERBPower(fs=16000, hop_size=0)
    with pytest.raises(InvalidArgumentError):
        ERBPower(fs=16000, bw_factor=-1.0)
    with pytest.raises(InvalidArgumentError):
        ERBPower(fs=16000, fc=torch.tensor([]))
    with pytest.raises(InvalidArgumentError):
        erb_channel_frequencies(1000.0, 500.0)

    with pytest.raises(ShapeError):
        ERBPower(fs=16000, fc=torch.full((2, 3), 1000.0))
    with pytest.raises(ShapeError):
        ERBPower(fs=16000)(torch.randn(2, 1000))

    # b_c <= b0 at low frequencies: kernel width would be imaginary
    with pytest.raises(DomainError, match="bw_factor"):
        ERBPower(fs=16000, bw_factor=0.5)
    with pytest.raises(DomainError):
        ERBPower(fs=16000, fc=torch.tensor([0.0, 100.0]))
    with pytest.raises(DomainError):
        ERBPower(fs=16000, fc=[-5.0])

    # Non-finite channels would turn every output channel into NaN
    for bad in (float("nan"), float("inf")):
        with pytest.raises(DomainError, match="finite"):
            ERBPower(fs=16000, fc=[500.0, 1000.0, bad])
        with pytest.raises(DomainError):
            kernel_bandwidths(torch.tensor([500.0, bad], dtype=torch.float64))

    # A narrower bandwidth is fine where b_c stays above b0
    model = ERBPower(fs=16000, fc=torch.tensor([500.0, 1000.0]), bw_factor=0.5)
    assert torch.all(torch.isfinite(model.filterbank.kernels))


def test_channels_above_nyquist_warn():
    with pytest.warns(UserWarning, match="Nyquist"):
        ERBPower(fs=16000, fc=torch.tensor([1000.0, 9000.0]))

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        ERBPower(fs=16000)
