# cascade_detector/geometry.py


class Rectangle:
    """
    Detection rectangle in pixel units.

    total is the number of raw detections merged into this one
    (0 for a raw window straight out of the scanner).
    """

    __slots__ = ('x', 'y', 'width', 'height', 'total', 'label')

    def __init__(self, x, y, width, height, total=0, label=None):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.total = total
        self.label = label

    def as_window(self):
        """(x1, y1, x2, y2) corner form"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def area(self):
        return self.width * self.height

    def to_dict(self):
        data = {
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
            'total': self.total,
        }
        if self.label is not None:
            data['label'] = self.label
        return data

    def _key(self):
        # label is mutable metadata and stays out of equality and hashing
        return (self.x, self.y, self.width, self.height, self.total)

    def __eq__(self, other):
        if not isinstance(other, Rectangle):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        label = f", label={self.label!r}" if self.label is not None else ""
        return (f"Rectangle(x={self.x}, y={self.y}, width={self.width}, "
                f"height={self.height}, total={self.total}{label})")


def intersect_rect(ax0, ay0, ax1, ay1, bx0, by0, bx1, by1):
    """
    True unless one box lies strictly outside the other along some axis.
    Touching edges count as intersecting.
    """
    return not (bx0 > ax1 or bx1 < ax0 or by0 > ay1 or by1 < ay0)
