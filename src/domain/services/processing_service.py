from __future__ import annotations

import numpy as np

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)
_SEPIA_TONE = np.array([255.0, 240.0, 196.0], dtype=np.float32) / 255.0


class ProcessingService:
    """Pure NumPy image processing. Inputs and outputs are float32 RGB arrays
    of shape (H, W, 3) normalized to [0, 1].

    Parameters arrive already clamped by the step executor; each method clips
    its output to [0, 1].
    """

    # Brightness: I_out = I_in * factor
    @staticmethod
    def adjust_brightness(matrix: np.ndarray, factor: float) -> np.ndarray:
        out = np.clip(matrix.astype(np.float32) * float(factor), 0.0, 1.0)
        return out.astype(np.float32)

    # Linear contrast around mid-gray: I_out = a * I_in + 0.5 * (1 - a)
    @staticmethod
    def adjust_contrast(matrix: np.ndarray, factor: float) -> np.ndarray:
        a = float(factor)
        out = np.clip(a * matrix.astype(np.float32) + 0.5 * (1.0 - a), 0.0, 1.0)
        return out.astype(np.float32)

    # Saturation: I_out = Y + s * (I_in - Y), Y = luminosity
    @staticmethod
    def adjust_saturation(matrix: np.ndarray, scale: float) -> np.ndarray:
        mat = matrix.astype(np.float32)
        gray = ProcessingService.luminosity(mat)[..., None]
        out = np.clip(gray + float(scale) * (mat - gray), 0.0, 1.0)
        return out.astype(np.float32)

    # Hue rotation by `degrees` about the gray axis (luminance-preserving matrix).
    @staticmethod
    def rotate_hue(matrix: np.ndarray, degrees: float) -> np.ndarray:
        rad = np.deg2rad(float(degrees))
        cos_a = np.cos(rad)
        sin_a = np.sin(rad)
        lr, lg, lb = 0.213, 0.715, 0.072
        m = np.array(
            [
                [
                    lr + cos_a * (1 - lr) - sin_a * lr,
                    lg - cos_a * lg - sin_a * lg,
                    lb - cos_a * lb + sin_a * (1 - lb),
                ],
                [
                    lr - cos_a * lr + sin_a * 0.143,
                    lg + cos_a * (1 - lg) + sin_a * 0.140,
                    lb - cos_a * lb - sin_a * 0.283,
                ],
                [
                    lr - cos_a * lr - sin_a * (1 - lr),
                    lg - cos_a * lg + sin_a * lg,
                    lb + cos_a * (1 - lb) + sin_a * lb,
                ],
            ],
            dtype=np.float32,
        )
        out = np.clip(matrix.astype(np.float32) @ m.T, 0.0, 1.0)
        return out.astype(np.float32)

    # Luminosity: 0.299*R + 0.587*G + 0.114*B, shape (H, W)
    @staticmethod
    def luminosity(matrix: np.ndarray) -> np.ndarray:
        mat = matrix.astype(np.float32)
        if mat.ndim == 3 and mat.shape[2] >= 3:
            return np.dot(mat[..., :3], _LUMA).astype(np.float32)
        return mat

    # Grayscale kept as three identical channels so later steps stay RGB.
    @staticmethod
    def grayscale(matrix: np.ndarray) -> np.ndarray:
        gray = ProcessingService.luminosity(matrix)
        return np.repeat(gray[..., None], 3, axis=2).astype(np.float32)

    # Sepia: grayscale multiplied by a warm tone (255, 240, 196)
    @staticmethod
    def sepia(matrix: np.ndarray) -> np.ndarray:
        gray = ProcessingService.grayscale(matrix)
        return np.clip(gray * _SEPIA_TONE, 0.0, 1.0).astype(np.float32)

    # Tint: overlay blend of a solid color, mixed at `strength` in [0, 1].
    # overlay(a, b) = 2ab if a < 0.5 else 1 - 2(1 - a)(1 - b)
    @staticmethod
    def tint(matrix: np.ndarray, rgb: tuple[float, float, float], strength: float) -> np.ndarray:
        mat = matrix.astype(np.float32)
        s = float(np.clip(strength, 0.0, 1.0))
        if s == 0.0:
            return mat
        color = np.array(rgb, dtype=np.float32)
        overlay = np.where(
            mat < 0.5,
            2.0 * mat * color,
            1.0 - 2.0 * (1.0 - mat) * (1.0 - color),
        )
        out = np.clip((1.0 - s) * mat + s * overlay, 0.0, 1.0)
        return out.astype(np.float32)

    # Rotate clockwise by `degrees`. Right angles are exact (90/270 swap H and W);
    # other angles expand the canvas and use nearest-neighbor sampling, black fill.
    @staticmethod
    def rotate(matrix: np.ndarray, degrees: float) -> np.ndarray:
        mat = matrix.astype(np.float32)
        angle = float(degrees) % 360.0
        if angle % 90.0 == 0.0:
            return np.ascontiguousarray(np.rot90(mat, k=-int(angle // 90.0)))

        h, w = mat.shape[:2]
        rad = np.deg2rad(angle)
        cos_a = np.cos(rad)
        sin_a = np.sin(rad)
        out_w = int(np.ceil(abs(w * cos_a) + abs(h * sin_a)))
        out_h = int(np.ceil(abs(w * sin_a) + abs(h * cos_a)))
        out = np.zeros((out_h, out_w) + mat.shape[2:], dtype=np.float32)

        cx = (w - 1) / 2.0
        cy = (h - 1) / 2.0
        ocx = (out_w - 1) / 2.0
        ocy = (out_h - 1) / 2.0
        # For each destination pixel, map back to source (inverse clockwise rotation)
        ys, xs = np.indices((out_h, out_w))
        x_rel = xs - ocx
        y_rel = ys - ocy
        x_src = cos_a * x_rel + sin_a * y_rel + cx
        y_src = -sin_a * x_rel + cos_a * y_rel + cy
        x_src_round = np.rint(x_src).astype(int)
        y_src_round = np.rint(y_src).astype(int)
        valid = (x_src_round >= 0) & (x_src_round < w) & (y_src_round >= 0) & (y_src_round < h)
        out[valid] = mat[y_src_round[valid], x_src_round[valid]]
        return out
