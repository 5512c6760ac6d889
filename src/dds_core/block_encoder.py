"""
BC1/BC2/BC3 block encoder.

Colour endpoints are chosen by one of three fits:
- range_fit: endpoints at the extremes of the principal axis
- cluster_fit: every ordered split of the pixels (sorted along the principal
  axis) into palette clusters, endpoints solved by weighted least squares
- iterative_cluster_fit: cluster_fit repeated with the axis re-estimated from
  the best endpoints, until the ordering or the error stops changing

Colour error is measured with a per-channel metric (uniform, or perceptual
0.2126/0.7152/0.0722) and each pixel can be weighted by its alpha, so
nearly transparent pixels barely influence the endpoints.

Block structure:
- BC1 (8 bytes): color0 (RGB565), color1 (RGB565), 2-bit indices
  color0 > color1 selects 4-colour mode, otherwise 3-colour + transparent
- BC2 (16 bytes): 4-bit explicit alpha per pixel, then a BC1 colour block
- BC3 (16 bytes): alpha0, alpha1, 3-bit indices, then a BC1 colour block
"""

import struct
from dataclasses import dataclass
from functools import lru_cache
from itertools import combinations_with_replacement

import numpy as np

from .settings import CompressionParams

# RGB order inside the encoder
UNIFORM_METRIC = np.array([1.0, 1.0, 1.0])
PERCEPTUAL_METRIC = np.array([0.2126, 0.7152, 0.0722])

# RGB565 levels per channel
GRID = np.array([31.0, 63.0, 31.0])

MAX_ITERATIONS = 8

# Weight of endpoint a for each cluster
FOUR_COLOUR_ALPHAS = (1.0, 2.0 / 3.0, 1.0 / 3.0, 0.0)
THREE_COLOUR_ALPHAS = (1.0, 0.5, 0.0)

# DXT1 pixels with alpha below this are encoded as transparent
DXT1_ALPHA_THRESHOLD = 128


@dataclass
class ColourFit:
    """Quantized endpoints (RGB565 components) and their weighted error"""
    start: np.ndarray
    end: np.ndarray
    three_colour: bool
    error: float


def colour_metric(params: CompressionParams) -> np.ndarray:
    return UNIFORM_METRIC if params.uniform_weighting else PERCEPTUAL_METRIC


def colour_weights(alpha: np.ndarray, params: CompressionParams) -> np.ndarray:
    """Per-pixel weights: (alpha + 1) / 256 when weighting by alpha, else 1"""
    if params.weigh_colour_by_alpha:
        return (alpha.astype(np.float64) + 1.0) / 256.0
    return np.ones(len(alpha))


def _expand(q: np.ndarray) -> np.ndarray:
    """RGB565 components -> 8-bit values, replicating the high bits like decoders do"""
    q = q.astype(np.int64)
    r = (q[..., 0] << 3) | (q[..., 0] >> 2)
    g = (q[..., 1] << 2) | (q[..., 1] >> 4)
    b = (q[..., 2] << 3) | (q[..., 2] >> 2)
    return np.stack([r, g, b], axis=-1).astype(np.float64)


def _quantize(colours: np.ndarray) -> np.ndarray:
    clamped = np.clip(colours, 0.0, 255.0)
    return np.floor(clamped / 255.0 * GRID + 0.5).astype(np.int64)


def _palettes(start: np.ndarray, end: np.ndarray, three_colour: bool) -> np.ndarray:
    """(..., 3) endpoints -> (..., entries, 3) palettes without the transparent entry"""
    if three_colour:
        entries = [start, end, (start + end) / 2.0]
    else:
        entries = [start, end, (2.0 * start + end) / 3.0, (start + 2.0 * end) / 3.0]
    return np.stack(entries, axis=-2)


def _errors(points, weights, metric, start_q, end_q, three_colour):
    """Weighted error of each candidate endpoint pair, pixels mapped to their nearest entry"""
    palettes = _palettes(_expand(start_q), _expand(end_q), three_colour)
    diff = (palettes[:, :, None, :] - points[None, None, :, :]) * metric
    dist = np.sum(diff * diff, axis=-1)
    return np.sum(np.min(dist, axis=1) * weights, axis=-1)


def _principal_axis(points: np.ndarray, weights: np.ndarray) -> np.ndarray:
    total = weights.sum()
    centroid = (points * weights[:, None]).sum(axis=0) / total
    centred = points - centroid
    covariance = (centred * weights[:, None]).T @ centred
    _, vectors = np.linalg.eigh(covariance)
    return vectors[:, -1]


@lru_cache(maxsize=None)
def _partitions(count: int, clusters: int) -> np.ndarray:
    """All boundary tuples 0 <= i <= j (<= k) <= count splitting count ordered pixels"""
    return np.array(list(combinations_with_replacement(range(count + 1), clusters - 1)),
                    dtype=np.int64)


def _cluster_candidates(points, weights, axis, three_colour):
    """Least-squares endpoints for every ordered split along axis"""
    order = np.argsort(points @ axis, kind='stable')
    ordered = points[order]
    w = weights[order]
    count = len(points)

    weight_sums = np.concatenate([[0.0], np.cumsum(w)])
    point_sums = np.vstack([np.zeros(3), np.cumsum(ordered * w[:, None], axis=0)])

    alphas = THREE_COLOUR_ALPHAS if three_colour else FOUR_COLOUR_ALPHAS
    bounds = _partitions(count, len(alphas))
    edges = np.hstack([
        np.zeros((len(bounds), 1), dtype=np.int64),
        bounds,
        np.full((len(bounds), 1), count, dtype=np.int64),
    ])

    alpha2 = np.zeros(len(bounds))
    beta2 = np.zeros(len(bounds))
    alphabeta = np.zeros(len(bounds))
    alphax = np.zeros((len(bounds), 3))
    betax = np.zeros((len(bounds), 3))
    for c, alpha in enumerate(alphas):
        beta = 1.0 - alpha
        cw = weight_sums[edges[:, c + 1]] - weight_sums[edges[:, c]]
        cx = point_sums[edges[:, c + 1]] - point_sums[edges[:, c]]
        alpha2 += cw * alpha * alpha
        beta2 += cw * beta * beta
        alphabeta += cw * alpha * beta
        alphax += cx * alpha
        betax += cx * beta

    with np.errstate(divide='ignore', invalid='ignore'):
        factor = 1.0 / (alpha2 * beta2 - alphabeta * alphabeta)
        start = (alphax * beta2[:, None] - betax * alphabeta[:, None]) * factor[:, None]
        end = (betax * alpha2[:, None] - alphax * alphabeta[:, None]) * factor[:, None]

    valid = np.all(np.isfinite(start), axis=1) & np.all(np.isfinite(end), axis=1)
    return start[valid], end[valid], tuple(order)


def _best(points, weights, metric, start, end, three_colour):
    start_q = _quantize(start)
    end_q = _quantize(end)
    errors = _errors(points, weights, metric, start_q, end_q, three_colour)
    i = int(np.argmin(errors))
    return ColourFit(start_q[i], end_q[i], three_colour, float(errors[i]))


def fit_colours(points: np.ndarray, weights: np.ndarray, metric: np.ndarray,
                algorithm: str, three_colour: bool) -> ColourFit:
    """
    Choose quantized endpoints for one block.

    Args:
        points: (n, 3) RGB values of the pixels to fit, 0-255
        weights: (n,) per-pixel weights
        metric: (3,) per-channel error weights
        algorithm: 'range_fit', 'cluster_fit' or 'iterative_cluster_fit'
        three_colour: Fit the 3-colour palette instead of the 4-colour one

    Returns:
        The candidate with the lowest weighted error. Cluster fits always
        include the range fit candidate, so they are never worse.
    """
    points = points.astype(np.float64)
    axis = _principal_axis(points, weights)

    projections = points @ axis
    range_start = points[np.argmax(projections)][None, :]
    range_end = points[np.argmin(projections)][None, :]
    best = _best(points, weights, metric, range_start, range_end, three_colour)
    if algorithm == 'range_fit':
        return best

    iterations = MAX_ITERATIONS if algorithm == 'iterative_cluster_fit' else 1
    seen_orders = set()
    for _ in range(iterations):
        start, end, order = _cluster_candidates(points, weights, axis, three_colour)
        if order in seen_orders or len(start) == 0:
            break
        seen_orders.add(order)

        candidate = _best(points, weights, metric, start, end, three_colour)
        if candidate.error >= best.error:
            break
        best = candidate

        axis = _expand(best.start) - _expand(best.end)
        if not np.any(axis):
            break
    return best


def _pack565(q: np.ndarray) -> int:
    return (int(q[0]) << 11) | (int(q[1]) << 5) | int(q[2])


def encode_colour_block(rgb: np.ndarray, alpha: np.ndarray, params: CompressionParams,
                        allow_transparent: bool) -> bytes:
    """
    Encode one 4x4 colour block (BC1 layout).

    Args:
        rgb: (16, 3) RGB pixel values
        alpha: (16,) alpha values
        params: Compression quality parameters
        allow_transparent: True for DXT1, where alpha < 128 becomes index 3 of
                           the 3-colour palette. DXT3/DXT5 always use 4 colours.
    """
    metric = colour_metric(params)
    weights = colour_weights(alpha, params)
    if allow_transparent:
        transparent = alpha < DXT1_ALPHA_THRESHOLD
    else:
        transparent = np.zeros(16, dtype=bool)
    opaque = ~transparent

    if not np.any(opaque):
        return struct.pack('<HHI', 0, 0, 0xFFFFFFFF)

    points = rgb[opaque].astype(np.float64)
    w = weights[opaque]
    if np.any(transparent):
        fit = fit_colours(points, w, metric, params.algorithm, three_colour=True)
    else:
        fit = fit_colours(points, w, metric, params.algorithm, three_colour=False)
        if allow_transparent:
            three = fit_colours(points, w, metric, params.algorithm, three_colour=True)
            if three.error < fit.error:
                fit = three

    c0 = _pack565(fit.start)
    c1 = _pack565(fit.end)
    palette = _palettes(_expand(fit.start), _expand(fit.end), fit.three_colour)
    diff = (palette[:, None, :] - rgb[None, :, :].astype(np.float64)) * metric
    indices = np.argmin(np.sum(diff * diff, axis=-1), axis=0)

    if fit.three_colour:
        # 3-colour mode needs color0 <= color1
        if c0 > c1:
            c0, c1 = c1, c0
            indices = np.array([1, 0, 2])[indices]
    elif c0 == c1:
        indices = np.zeros(16, dtype=np.int64)
    elif c0 < c1:
        c0, c1 = c1, c0
        indices = np.array([1, 0, 3, 2])[indices]
    indices = np.where(transparent, 3, indices)

    bits = 0
    for i, index in enumerate(indices):
        bits |= int(index) << (i * 2)
    return struct.pack('<HHI', c0, c1, bits)


def encode_explicit_alpha(alpha: np.ndarray) -> bytes:
    """BC2 alpha: 4 bits per pixel, pixel 0 in the low nibble"""
    quantized = np.floor(alpha.astype(np.float64) * 15.0 / 255.0 + 0.5).astype(np.uint8)
    return (quantized[0::2] | (quantized[1::2] << 4)).astype(np.uint8).tobytes()


def _alpha_palette(a0: int, a1: int):
    if a0 > a1:
        return [a0, a1,
                (6 * a0 + 1 * a1) // 7, (5 * a0 + 2 * a1) // 7,
                (4 * a0 + 3 * a1) // 7, (3 * a0 + 4 * a1) // 7,
                (2 * a0 + 5 * a1) // 7, (1 * a0 + 6 * a1) // 7]
    return [a0, a1,
            (4 * a0 + 1 * a1) // 5, (3 * a0 + 2 * a1) // 5,
            (2 * a0 + 3 * a1) // 5, (1 * a0 + 4 * a1) // 5,
            0, 255]


def _fit_alpha(alpha: np.ndarray, a0: int, a1: int):
    palette = np.array(_alpha_palette(a0, a1), dtype=np.int64)
    dist = (palette[:, None] - alpha[None, :].astype(np.int64)) ** 2
    indices = np.argmin(dist, axis=0)
    return int(dist[indices, np.arange(len(alpha))].sum()), indices


def encode_interpolated_alpha(alpha: np.ndarray) -> bytes:
    """
    BC3 alpha block.

    Tries the 8-value mode spanning min..max and the 6-value mode spanning
    the values strictly between 0 and 255 (which get their own codes), and
    keeps the one with the lower squared error.
    """
    lo = int(alpha.min())
    hi = int(alpha.max())
    # 8-value mode needs alpha0 > alpha1; equal endpoints fall back to 6-value codes
    best = (*_fit_alpha(alpha, hi, lo), hi, lo)

    inner = alpha[(alpha > 0) & (alpha < 255)]
    if len(inner):
        lo5, hi5 = int(inner.min()), int(inner.max())
    else:
        lo5 = hi5 = 0
    candidate = (*_fit_alpha(alpha, lo5, hi5), lo5, hi5)
    if candidate[0] < best[0]:
        best = candidate

    _, indices, a0, a1 = best
    bits = 0
    for i, index in enumerate(indices):
        bits |= int(index) << (i * 3)
    return bytes([a0, a1]) + bits.to_bytes(6, 'little')


def _image_blocks(pixels: bytes, width: int, height: int) -> np.ndarray:
    """Canonical BGRA image -> (blocks, 16, 4) in block stream order"""
    arr = np.frombuffer(pixels, dtype=np.uint8).reshape(height // 4, 4, width // 4, 4, 4)
    return arr.transpose(0, 2, 1, 3, 4).reshape(-1, 16, 4)


def compress_blocks(pixels: bytes, width: int, height: int, params: CompressionParams,
                    alpha_encoding: str = None) -> bytes:
    """
    Compress a canonical BGRA image into a BCn block stream.

    Args:
        pixels: width * height * 4 bytes of BGRA
        width, height: Image size, both multiples of 4
        params: Compression quality parameters
        alpha_encoding: None for BC1 (1-bit transparency), 'explicit' for BC2
                        or 'interpolated' for BC3
    """
    out = bytearray()
    for block in _image_blocks(pixels, width, height):
        rgb = block[:, [2, 1, 0]]
        alpha = block[:, 3]
        if alpha_encoding == 'explicit':
            out += encode_explicit_alpha(alpha)
        elif alpha_encoding == 'interpolated':
            out += encode_interpolated_alpha(alpha)
        out += encode_colour_block(rgb, alpha, params, allow_transparent=alpha_encoding is None)
    return bytes(out)
