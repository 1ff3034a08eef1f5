from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE
from PolyCore.Objects.FEM.Hexa import Hex8, Hex27
from PolyCore.Objects.FEM.Lines import Line2, Line3
from PolyCore.Objects.FEM.Quads import Quad4, Quad9
from PolyCore.Objects.FEM.Triangles import Triangle3, Triangle6

# Closed catalogue of element types, keyed by tag
ELEMENT_TYPES: Dict[str, BaseFE] = {
    shape.name: shape for shape in (Line2(), Line3(), Triangle3(), Triangle6(), Quad4(), Quad9(), Hex8(), Hex27())
}


@dataclass(frozen=True)
class Element:
    """
    Mesh element: connectivity, type tag, material key and section.

    Attributes:
        type: Element type tag, key of ELEMENT_TYPES
        nodes: Node indices in the element's local ordering
        material: Key into the materials mapping passed to the engine
        section: Cross-section area (1D) or thickness (2D); a number or the
            name of a geometric parameter. Ignored for 3D elements.
        tag: Element index; assembly always runs in ascending tag order
    """
    type: str
    nodes: Tuple[int, ...]
    material: str
    section: Union[float, str] = 1.0
    tag: int = -1

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(int(n) for n in self.nodes))
        if not isinstance(self.section, str) and self.section <= 0:
            raise ValueError(f"Section must be positive, got {self.section}")


class Mesh:
    """
    Already-parsed mesh consumed by the assembly engine.

    Degrees of freedom are numbered node-major: node a owns DOFs
    ``a*dim .. a*dim + dim - 1``.

    Attributes:
        nodes: Node coordinates at nominal parameters, shape (n_nodes, dim)
        elements: List of Element
        fixed: Set of Dirichlet (constrained) DOFs
        morphs: Morph field per geometric parameter, shape (n_nodes, dim)
    """

    def __init__(self, nodes):
        nodes = np.asarray(nodes, dtype=float)
        if nodes.ndim == 1:
            nodes = nodes[:, None]
        if nodes.ndim != 2 or nodes.shape[1] not in (1, 2, 3):
            raise ValueError(f"Node array must have shape (n_nodes, 1|2|3), got {nodes.shape}")
        self.nodes = nodes
        self.elements: List[Element] = []
        self.fixed = set()
        self.morphs: Dict[str, np.ndarray] = {}

    @property
    def dim(self) -> int:
        return self.nodes.shape[1]

    @property
    def n_nodes(self) -> int:
        return self.nodes.shape[0]

    @property
    def n_dofs(self) -> int:
        return self.n_nodes * self.dim

    def __repr__(self):
        return (f"Mesh(dim={self.dim}, nodes={self.n_nodes}, elements={len(self.elements)}, "
                f"fixed={len(self.fixed)}, morphs={list(self.morphs)})")

    # ----- construction -----
    def add_element(self, type: str, nodes: Sequence[int], material: str,
                    section: Union[float, str] = 1.0, tag: Optional[int] = None) -> Element:
        if tag is None:
            tag = max((e.tag for e in self.elements), default=-1) + 1
        element = Element(type=type, nodes=tuple(nodes), material=material, section=section, tag=tag)
        self.elements.append(element)
        return element

    def fix_dofs(self, dofs: Iterable[int]):
        for dof in dofs:
            dof = int(dof)
            if not 0 <= dof < self.n_dofs:
                raise ValueError(f"DOF {dof} out of range [0, {self.n_dofs})")
            self.fixed.add(dof)

    def fix_node(self, node: int, components: Optional[Iterable[int]] = None):
        """Fix all (or the given) displacement components of one node."""
        if not 0 <= node < self.n_nodes:
            raise ValueError(f"Node {node} out of range [0, {self.n_nodes})")
        components = range(self.dim) if components is None else components
        self.fix_dofs(node * self.dim + int(c) for c in components)

    def add_morph(self, name: str, field):
        """Register the node direction along which parameter `name` moves the geometry."""
        field = np.asarray(field, dtype=float)
        if field.ndim == 1 and self.dim == 1:
            field = field[:, None]
        if field.shape != self.nodes.shape:
            raise ValueError(f"Morph field for '{name}' must have shape {self.nodes.shape}, got {field.shape}")
        self.morphs[name] = field

    def add_scaling_morph(self, name: str, axis: int, reference_length: float):
        """
        Morph for a length parameter along one axis.

        With nominal length L0 = reference_length, node coordinates along
        `axis` scale as x * L / L0.
        """
        if reference_length <= 0:
            raise ValueError(f"Reference length must be positive, got {reference_length}")
        field = np.zeros_like(self.nodes)
        field[:, axis] = self.nodes[:, axis] / reference_length
        self.add_morph(name, field)

    def element_dofs(self, element: Element) -> np.ndarray:
        nodes = np.asarray(element.nodes, dtype=int)
        return (nodes[:, None] * self.dim + np.arange(self.dim)[None, :]).ravel()

    def sorted_elements(self) -> List[Element]:
        """Elements in canonical (ascending tag) order."""
        return sorted(self.elements, key=lambda e: e.tag)

    def validate(self):
        """
        Check connectivity and element types.

        Raises:
            ValueError: on unknown nodes, repeated nodes, unregistered or
                mismatched element types, wrong node counts, duplicated tags
        """
        tags = set()
        for e in self.elements:
            shape = ELEMENT_TYPES.get(e.type)
            if shape is None:
                raise ValueError(f"Element {e.tag}: unknown element type '{e.type}'")
            if shape.dim != self.dim:
                raise ValueError(f"Element {e.tag}: {e.type} is {shape.dim}D, mesh is {self.dim}D")
            if len(e.nodes) != shape.n_nodes:
                raise ValueError(f"Element {e.tag}: {e.type} requires {shape.n_nodes} nodes, got {len(e.nodes)}")
            if len(set(e.nodes)) != len(e.nodes):
                raise ValueError(f"Element {e.tag}: repeated node in {e.nodes}")
            if min(e.nodes) < 0 or max(e.nodes) >= self.n_nodes:
                raise ValueError(f"Element {e.tag}: node index out of range in {e.nodes}")
            if e.tag in tags:
                raise ValueError(f"Duplicate element tag {e.tag}")
            tags.add(e.tag)

    # ----- structured builders -----
    @classmethod
    def line(cls, n_elements: int, length: float, material: str, section: Union[float, str] = 1.0,
             element_type: str = "line2") -> "Mesh":
        """
        Straight bar along x from 0 to `length`.

        Line3 elements get their mid node appended after the end nodes.
        """
        if n_elements < 1 or length <= 0:
            raise ValueError("Need n_elements >= 1 and length > 0")
        if element_type not in ("line2", "line3"):
            raise ValueError(f"Unsupported line element '{element_type}'")
        mul = 2 if element_type == "line3" else 1
        x = np.linspace(0.0, length, n_elements * mul + 1)
        mesh = cls(x[:, None])
        for i in range(n_elements):
            a = i * mul
            nodes = (a, a + 1) if mul == 1 else (a, a + 2, a + 1)
            mesh.add_element(element_type, nodes, material, section)
        return mesh

    @classmethod
    def from_rectangular_grid(cls, nx: int, ny: int, length: float, height: float, material: str,
                              section: Union[float, str] = 1.0, element_type: str = "quad4") -> "Mesh":
        """
        Structured grid on [0, length] x [0, height].

        Parameters
        ----------
        nx, ny : int
            Number of cells in x and y directions.
        length, height : float
            Total dimensions.
        material : str
            Material key for all elements.
        section : float or str
            Thickness (number or geometric parameter name).
        element_type : str
            'quad4', 'quad9', 'triangle3' or 'triangle6' (two triangles per cell).
        """
        if element_type not in ("quad4", "quad9", "triangle3", "triangle6"):
            raise ValueError(f"Unsupported element type for rectangular grid: {element_type}")
        order = 2 if element_type in ("quad9", "triangle6") else 1
        nnx = nx * order + 1
        nny = ny * order + 1

        x = np.linspace(0, length, nnx)
        y = np.linspace(0, height, nny)
        xv, yv = np.meshgrid(x, y)
        mesh = cls(np.column_stack([xv.ravel(), yv.ravel()]))

        for nodes in cls._compute_connectivity(nx, ny, nnx, element_type):
            mesh.add_element(element_type, nodes.tolist(), material, section)
        return mesh

    @staticmethod
    def _compute_connectivity(nx: int, ny: int, nnx: int, element_type: str) -> np.ndarray:
        """Compute element connectivity for structured grids (vectorized)."""
        ii, jj = np.meshgrid(np.arange(nx), np.arange(ny), indexing='ij')
        ii = ii.ravel()
        jj = jj.ravel()

        if element_type == "quad4":
            base = ii + jj * nnx
            return np.column_stack([base, base + 1, base + 1 + nnx, base + nnx])

        if element_type == "triangle3":
            base = ii + jj * nnx
            tri1 = np.column_stack([base, base + 1, base + 1 + nnx])
            tri2 = np.column_stack([base, base + 1 + nnx, base + nnx])
            conn = np.empty((2 * len(base), 3), dtype=np.int64)
            conn[0::2] = tri1
            conn[1::2] = tri2
            return conn

        base = 2 * ii + 2 * jj * nnx
        c0, c1, c2, c3 = base, base + 2, base + 2 + 2 * nnx, base + 2 * nnx
        m01, m12, mid = base + 1, base + 2 + nnx, base + 1 + nnx
        m23, m30 = base + 1 + 2 * nnx, base + nnx
        if element_type == "quad9":
            return np.column_stack([c0, c1, c2, c3, m01, m12, m23, m30, mid])

        tri1 = np.column_stack([c0, c1, c2, m01, m12, mid])
        tri2 = np.column_stack([c0, c2, c3, mid, m23, m30])
        conn = np.empty((2 * len(base), 6), dtype=np.int64)
        conn[0::2] = tri1
        conn[1::2] = tri2
        return conn

    @classmethod
    def from_box_grid(cls, nx: int, ny: int, nz: int, lx: float, ly: float, lz: float,
                      material: str, element_type: str = "hex8") -> "Mesh":
        """
        Structured grid on [0, lx] x [0, ly] x [0, lz].

        Parameters
        ----------
        nx, ny, nz : int
            Number of cells per direction.
        lx, ly, lz : float
            Total dimensions.
        material : str
            Material key for all elements.
        element_type : str
            'hex8' or 'hex27'.
        """
        if element_type not in ("hex8", "hex27"):
            raise ValueError(f"Unsupported element type for box grid: {element_type}")
        order = 2 if element_type == "hex27" else 1
        nnx, nny, nnz = nx * order + 1, ny * order + 1, nz * order + 1
        x = np.linspace(0, lx, nnx)
        y = np.linspace(0, ly, nny)
        z = np.linspace(0, lz, nnz)
        zv, yv, xv = np.meshgrid(z, y, x, indexing="ij")
        mesh = cls(np.column_stack([xv.ravel(), yv.ravel(), zv.ravel()]))

        def node(i, j, k):
            return i + j * nnx + k * nnx * nny

        # lattice offsets of the element nodes, in reference-node order
        shape = ELEMENT_TYPES[element_type]
        offsets = np.rint((shape.reference_nodes() + 1.0) * order / 2.0).astype(int)
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    nodes = [int(node(order * i + a, order * j + b, order * k + c)) for a, b, c in offsets]
                    mesh.add_element(element_type, nodes, material)
        return mesh
