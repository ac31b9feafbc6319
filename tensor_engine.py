"""
Tensor helpers for the simplifier.

Elements are held in numpy object arrays so the bilinear products run
through numpy's own dot machinery; multiplying and adding Expression
objects only builds new (unsimplified) nodes, which the simplifier then
settles.  Shapes numpy cannot contract are reported as None and the caller
leaves the product alone.
"""
from typing import Optional, Tuple

import numpy as np

from expression_tree import Add, Expression, Matrix, Mul, Tensor, is_tensor


def shape(t: Expression) -> Optional[Tuple[int, ...]]:
    """Shape of a Tensor/Matrix, or None when ragged or not a tensor."""
    if isinstance(t, Matrix):
        widths = {len(row) for row in t.rows}
        if len(widths) > 1:
            return None
        return (len(t.rows), widths.pop() if widths else 0)
    if not isinstance(t, Tensor):
        return ()
    if not t.elements:
        return (0,)
    inner = [shape(e) if isinstance(e, Tensor) else () for e in t.elements]
    if any(s is None for s in inner) or len(set(inner)) != 1:
        return None
    return (len(t.elements),) + inner[0]


def rank(t: Expression) -> int:
    s = shape(t)
    return -1 if s is None else len(s)


def to_array(t: Expression) -> np.ndarray:
    dims = shape(t)
    arr = np.empty(dims, dtype=object)
    for index in np.ndindex(*dims):
        arr[index] = _element(t, index)
    return arr


def _element(t: Expression, index) -> Expression:
    node = t
    for i in index:
        if isinstance(node, Matrix):
            node = node.rows[i]
        elif isinstance(node, Tensor):
            node = node.elements[i]
        else:
            node = node[i]    # a Matrix row tuple
    return node


def from_array(arr: np.ndarray, as_matrix: bool = False) -> Expression:
    if arr.ndim == 0:
        return arr.item()
    if as_matrix and arr.ndim == 2:
        return Matrix(tuple(tuple(row) for row in arr.tolist()))
    if arr.ndim == 1:
        return Tensor(tuple(arr.tolist()))
    return Tensor(tuple(from_array(sub) for sub in arr))


def _usable(*tensors) -> bool:
    for t in tensors:
        s = shape(t)
        if s is None or 0 in s or len(s) > 2:
            return False
    return True


def add_tensors(a: Expression, b: Expression) -> Optional[Expression]:
    """Elementwise a + b for equal shapes."""
    if shape(a) is None or shape(a) != shape(b) or 0 in shape(a):
        return None
    arr = np.empty(shape(a), dtype=object)
    left, right = to_array(a), to_array(b)
    for index in np.ndindex(*arr.shape):
        arr[index] = Add((left[index], right[index]))
    return from_array(arr, as_matrix=isinstance(a, Matrix) or isinstance(b, Matrix))


def scale(t: Expression, scalar: Expression) -> Expression:
    """scalar·t elementwise.  Ragged tensors are scaled row by row."""
    if isinstance(t, Matrix):
        return Matrix(tuple(tuple(Mul((scalar, x)) for x in row) for row in t.rows))
    return Tensor(tuple(scale(x, scalar) if is_tensor(x) else Mul((scalar, x)) for x in t.elements))


def product(a: Expression, b: Expression) -> Optional[Expression]:
    """
    Bilinear product when ranks permit:

        vector·vector -> scalar (dot)
        matrix·vector -> vector
        vector·matrix -> vector
        matrix·matrix -> matrix
    """
    if not _usable(a, b):
        return None
    left, right = to_array(a), to_array(b)
    if left.shape[-1] != right.shape[0]:
        return None
    result = np.dot(left, right)
    if not isinstance(result, np.ndarray):
        return result
    return from_array(result, as_matrix=isinstance(a, Matrix) or isinstance(b, Matrix))
