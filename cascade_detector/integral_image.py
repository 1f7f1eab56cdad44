# cascade_detector/integral_image.py
"""
Integral images (summed area tables) used by the Haar cascade detector.

All tables are unpadded and sized (height, width). Cell (r, c) of the upright
tables holds the sum over rows 0..r and columns 0..c inclusive, so a block
anchored at (row, col) is read with the four corners A, B, D, C:

    A = row * width + col          B = A + block_width
    D = A + block_height * width   C = D + block_width
    sum = A - B - D + C
"""
import numpy as np
import cv2


def to_grayscale(pixels, width, height):
    """
    Convert pixels to a (height, width) int64 luminance array.

    Accepts a flat RGBA buffer of length width*height*4, an (H, W, 4) RGBA
    array, an (H, W, 3) RGB array or an (H, W) grayscale array.
    """
    data = np.asarray(pixels)

    if data.ndim == 1:
        if data.size != width * height * 4:
            raise ValueError(
                f"Flat RGBA buffer must hold {width * height * 4} values, got {data.size}"
            )
        data = data.reshape(height, width, 4)

    if data.shape[:2] != (height, width):
        raise ValueError(
            f"Pixel array shape {data.shape} does not match {width}x{height}"
        )

    if data.ndim == 2:
        return data.astype(np.int64)

    if data.ndim != 3 or data.shape[2] not in (3, 4):
        raise ValueError("Pixels must be RGB or RGBA")

    rgb = data[:, :, :3].astype(np.float64)
    # Truncated luma, same weights for every table
    gray = rgb[:, :, 0] * 0.299 + rgb[:, :, 1] * 0.587 + rgb[:, :, 2] * 0.114
    return np.floor(gray).astype(np.int64)


def sobel_magnitude(gray):
    """Gradient magnitude of a grayscale image using 3x3 Sobel kernels"""
    gray = gray.astype(np.float32)
    grad_x = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
    return np.sqrt(grad_x ** 2 + grad_y ** 2)


def summed_area_table(values, dtype=np.int64):
    """SAT(r, c) = sum of values[0..r, 0..c]"""
    return np.cumsum(np.cumsum(values.astype(dtype), axis=0), axis=1)


def rotated_summed_area_table(gray):
    """
    Rotated summed area table (45 degree tilted).

    RSAT(r, c) = RSAT(r-1, c-1) + RSAT(r-1, c+1) - RSAT(r-2, c) + I(r, c) + I(r-1, c)

    which is the sum of I(r', c') over r' <= r and |c - c'| <= r - r'.
    Pixels outside the image count as zero. The image is padded sideways by
    its height so the recurrence never reads a clipped neighbour.
    """
    height, width = gray.shape
    pad = height
    padded = np.zeros((height, width + 2 * pad), dtype=np.int64)
    padded[:, pad:pad + width] = gray

    rsat = np.zeros_like(padded)
    for r in range(height):
        row = padded[r].copy()
        if r >= 1:
            row += padded[r - 1]
            previous = rsat[r - 1]
            row[1:] += previous[:-1]
            row[:-1] += previous[1:]
        if r >= 2:
            row -= rsat[r - 2]
        rsat[r] = row

    return rsat[:, pad:pad + width].copy()


def corner_sum(table, a, width, block_width, block_height):
    """Four corner lookup A - B - D + C for the block whose A corner is index a"""
    b = a + block_width
    d = a + block_height * width
    c = d + block_width
    return table[a] - table[b] - table[d] + table[c]


class IntegralImages:
    """
    Container for the tables computed from one frame.

    The numpy arrays are (height, width). Flat row-major lists of the same
    tables are what the cascade evaluator indexes. Nothing here is written to
    after construction.
    """

    def __init__(self, width, height, sum_table=None, square_table=None,
                 tilted_table=None, sobel_table=None):
        self.width = width
        self.height = height
        self.sum_table = sum_table
        self.square_table = square_table
        self.tilted_table = tilted_table
        self.sobel_table = sobel_table
        self._flat = {}

    def flat(self, name):
        """Row-major list view of a table, index = row * width + col"""
        if name not in self._flat:
            table = getattr(self, name)
            if table is None:
                raise ValueError(f"Integral table '{name}' was not computed")
            self._flat[name] = table.ravel().tolist()
        return self._flat[name]

    def region_sum(self, row, col, block_width, block_height, table='sum_table'):
        """
        Sum read through the four corners of the block anchored at (row, col).

        Covers rows row+1..row+block_height and columns col+1..col+block_width
        of the source image.
        """
        if (row < 0 or col < 0 or row + block_height >= self.height
                or col + block_width >= self.width):
            raise ValueError("Block does not fit inside the integral image")
        return corner_sum(self.flat(table), row * self.width + col,
                          self.width, block_width, block_height)


def compute_integral_image(pixels, width, height, with_sum=True, with_square=True,
                           with_tilted=True, with_sobel=False):
    """
    Build the requested integral tables for one frame.

    Args:
        pixels: RGBA/RGB/grayscale pixels (see to_grayscale)
        width, height: Frame size
        with_sum, with_square, with_tilted, with_sobel: Which tables to compute

    Returns:
        IntegralImages with the unrequested tables left as None
    """
    if not (with_sum or with_square or with_tilted or with_sobel):
        raise ValueError("At least one integral table must be requested")
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")

    gray = to_grayscale(pixels, width, height)

    return IntegralImages(
        width,
        height,
        sum_table=summed_area_table(gray) if with_sum else None,
        square_table=summed_area_table(gray.astype(np.float64) ** 2, np.float64) if with_square else None,
        tilted_table=rotated_summed_area_table(gray) if with_tilted else None,
        sobel_table=summed_area_table(sobel_magnitude(gray), np.float64) if with_sobel else None,
    )
