"""Splitting an image into a fixed grid of cells."""

from __future__ import annotations

from dataclasses import dataclass

from nodebanana.core.images import decode_data_url, encode_data_url


@dataclass(frozen=True)
class GridCell:
    """One cell of a split image, in row-major order."""

    row: int
    col: int
    image: str
    width: int
    height: int

    @property
    def filename(self) -> str:
        return cell_filename(self.row, self.col)


def cell_filename(row: int, col: int) -> str:
    """Filename for the cell at zero-based (*row*, *col*), e.g. ``split-1-2.png``."""
    return f"split-{row + 1}-{col + 1}.png"


def split_grid(data_url: str, rows: int, cols: int) -> list[GridCell]:
    """Cut the image in *data_url* into ``rows x cols`` cells.

    Cell boundaries are computed with integer division of the full image
    size, so the cells tile the image exactly; when the size is not a
    multiple of the grid, trailing cells are one pixel larger.

    Args:
        data_url: Source image as a data URL.
        rows: Number of grid rows (>= 1).
        cols: Number of grid columns (>= 1).

    Returns:
        Cells in row-major order, each encoded as a PNG data URL.

    Raises:
        ValueError: If the grid shape is invalid or the image cannot be
            decoded.
    """
    if rows < 1 or cols < 1:
        raise ValueError(f"Grid must have at least one row and column, got {rows}x{cols}")

    image = decode_data_url(data_url)
    width, height = image.size
    if width < cols or height < rows:
        raise ValueError(f"Image {width}x{height} is too small for a {rows}x{cols} grid")

    cells: list[GridCell] = []
    for row in range(rows):
        top = row * height // rows
        bottom = (row + 1) * height // rows
        for col in range(cols):
            left = col * width // cols
            right = (col + 1) * width // cols
            cell = image.crop((left, top, right, bottom))
            cells.append(
                GridCell(
                    row=row,
                    col=col,
                    image=encode_data_url(cell),
                    width=cell.width,
                    height=cell.height,
                )
            )
    return cells
