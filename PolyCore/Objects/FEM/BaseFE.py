from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np


class BaseFE(ABC):
    """
    Abstract reference element: shape functions on a reference domain.

    Subclasses are stateless and shared through the ``ELEMENT_TYPES``
    registry; geometry and material live on the mesh element.

    Class attributes:
        name: Registry tag
        dim: Reference (and spatial) dimension
        n_nodes: Number of nodes
        order: Polynomial order p of the shape functions
        simplex: True for triangles, False for tensor-product domains
    """
    name = ""
    dim = 0
    n_nodes = 0
    order = 1
    simplex = False

    @abstractmethod
    def N_dN(self, xi: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return (N, dN_dxi) at reference point xi.
        N: (n_nodes,), dN_dxi: (n_nodes, dim)
        """
        pass

    @abstractmethod
    def reference_nodes(self) -> np.ndarray:
        """Reference coordinates of the nodes, shape (n_nodes, dim)."""
        pass

    def gradient_degree(self) -> int:
        """Degree of dN/dX per direction on an affine element."""
        if self.simplex or self.dim == 1:
            return self.order - 1
        return self.order

    def __repr__(self):
        return f"{type(self).__name__}()"
