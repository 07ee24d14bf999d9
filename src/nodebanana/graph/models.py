"""Pydantic models for workflow graphs.

These models describe the workflow document exchanged with the editor and
persisted on disk: nodes with a kind-specific payload, typed edges between
node handles, and named node groups.  The JSON wire format uses camelCase
keys (``sourceHandle``, ``outputImage``); Python code uses snake_case
attribute names.  Both spellings are accepted on input.

Models
------
Node
    A unit of work.  ``data`` holds the payload model matching ``type``.
Edge
    A connection from a source handle to a target handle, optionally
    flagged as a pause point.
Group
    A named cluster of node ids with a ``locked`` flag.
WorkflowDocument
    The full persisted workflow (``version``, ``id``, ``name``, nodes,
    edges, groups).
CarouselImageItem / ImageHistoryItem
    Per-node and global history records written after each generation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator
from pydantic.alias_generators import to_camel

AspectRatio = Literal["1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"]
Resolution = Literal["1K", "2K", "4K"]
ImageModel = Literal["nano-banana", "nano-banana-pro"]
TextProvider = Literal["google", "openai"]
GroupColor = Literal["neutral", "blue", "green", "purple", "orange", "red"]

# Target handles that carry images.  An edge without a target handle is
# treated as an image edge.
IMAGE_HANDLES = frozenset({"image", "content", "style"})
TEXT_HANDLE = "text"


class NodeKind(str, Enum):
    """Node kinds, valued by their workflow document ``type`` string."""

    IMAGE_INPUT = "imageInput"
    ANNOTATION = "annotation"
    PROMPT = "prompt"
    IMAGE_GENERATE = "nanoBanana"
    STYLE_TRANSFER = "styleTransfer"
    TEXT_GENERATE = "llmGenerate"
    SPLIT_GRID = "splitGrid"
    OUTPUT = "output"


class NodeStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    COMPLETE = "complete"
    ERROR = "error"


class WireModel(BaseModel):
    """Base for models serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Position(WireModel):
    x: float = 0.0
    y: float = 0.0


class Size(WireModel):
    width: float = 0.0
    height: float = 0.0


class Dimensions(WireModel):
    width: int
    height: int


# ---------------------------------------------------------------------------
# History records.
# ---------------------------------------------------------------------------


class CarouselImageItem(WireModel):
    """One entry of a generation node's carousel history.

    The generated image itself is not embedded.  ``id`` is the artifact id
    under which the image was handed to the artifact store, and is resolved
    lazily when the carousel is browsed.
    """

    id: str
    timestamp: int
    prompt: str
    aspect_ratio: AspectRatio
    model: ImageModel
    resolution: Resolution | None = None


class ImageHistoryItem(WireModel):
    """One entry of the workflow-wide image history (newest first)."""

    id: str
    image: str
    timestamp: int
    prompt: str
    aspect_ratio: AspectRatio
    model: ImageModel


# ---------------------------------------------------------------------------
# Node payloads, one model per node kind.
# ---------------------------------------------------------------------------


class NodeData(WireModel):
    """Fields shared by every node payload."""

    label: str | None = None
    custom_title: str | None = None
    comment: str | None = None


class StatusMixin(WireModel):
    status: NodeStatus = NodeStatus.IDLE
    error: str | None = None


class ImageInputData(NodeData):
    image: str | None = None
    filename: str | None = None
    dimensions: Dimensions | None = None


class AnnotationData(NodeData):
    source_image: str | None = None
    annotations: list[dict[str, Any]] = Field(default_factory=list)
    output_image: str | None = None


class PromptData(NodeData):
    prompt: str = ""


class ImageGenerateData(NodeData, StatusMixin):
    input_images: list[str] = Field(default_factory=list)
    input_prompt: str | None = None
    output_image: str | None = None
    aspect_ratio: AspectRatio = "1:1"
    resolution: Resolution = "1K"
    model: ImageModel = "nano-banana-pro"
    use_google_search: bool = False
    seed: int | None = None
    image_history: list[CarouselImageItem] = Field(default_factory=list)
    selected_history_index: int = 0


class StyleTransferData(NodeData, StatusMixin):
    content_image: str | None = None
    style_image: str | None = None
    prompt: str = ""
    output_image: str | None = None
    strength: int = Field(default=50, ge=0, le=100)
    aspect_ratio: AspectRatio = "1:1"
    resolution: Resolution = "1K"
    model: ImageModel = "nano-banana-pro"
    image_history: list[CarouselImageItem] = Field(default_factory=list)
    selected_history_index: int = 0


class TextGenerateData(NodeData, StatusMixin):
    input_prompt: str | None = None
    input_images: list[str] = Field(default_factory=list)
    output_text: str | None = None
    provider: TextProvider = "google"
    model: str = "gemini-3-flash-preview"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, ge=1)


class GenerateSettings(WireModel):
    aspect_ratio: AspectRatio = "1:1"
    resolution: Resolution = "1K"
    model: ImageModel = "nano-banana-pro"
    use_google_search: bool = False


class ChildNodeSet(WireModel):
    """Ids of the nodes pre-wired to one grid cell."""

    image_input: str
    prompt: str
    nano_banana: str


class SplitGridData(NodeData, StatusMixin):
    source_image: str | None = None
    target_count: int = 6
    default_prompt: str = ""
    generate_settings: GenerateSettings = Field(default_factory=GenerateSettings)
    child_node_ids: list[ChildNodeSet] = Field(default_factory=list)
    grid_rows: int = Field(default=2, ge=1)
    grid_cols: int = Field(default=3, ge=1)
    is_configured: bool = False


class OutputData(NodeData):
    image: str | None = None


PAYLOAD_MODELS: dict[NodeKind, type[NodeData]] = {
    NodeKind.IMAGE_INPUT: ImageInputData,
    NodeKind.ANNOTATION: AnnotationData,
    NodeKind.PROMPT: PromptData,
    NodeKind.IMAGE_GENERATE: ImageGenerateData,
    NodeKind.STYLE_TRANSFER: StyleTransferData,
    NodeKind.TEXT_GENERATE: TextGenerateData,
    NodeKind.SPLIT_GRID: SplitGridData,
    NodeKind.OUTPUT: OutputData,
}


# ---------------------------------------------------------------------------
# Graph structure.
# ---------------------------------------------------------------------------


class Node(WireModel):
    """A workflow node.

    ``data`` is always an instance of the payload model registered for
    ``type`` in :data:`PAYLOAD_MODELS`; a raw dict is converted during
    validation.
    """

    id: str
    type: NodeKind
    data: SerializeAsAny[NodeData]
    position: Position = Field(default_factory=Position)
    group_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "type" not in values:
            return values
        payload_model = PAYLOAD_MODELS[NodeKind(values["type"])]
        data = values.get("data")
        if not isinstance(data, payload_model):
            if isinstance(data, BaseModel):
                data = data.model_dump()
            values = {**values, "data": payload_model.model_validate(data or {})}
        return values

    @property
    def status(self) -> NodeStatus:
        return getattr(self.data, "status", NodeStatus.IDLE)

    @property
    def error(self) -> str | None:
        return getattr(self.data, "error", None)


class EdgeData(WireModel):
    has_pause: bool = False


class Edge(WireModel):
    """A connection from ``source``/``source_handle`` to ``target``/``target_handle``."""

    id: str = ""
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    data: EdgeData = Field(default_factory=EdgeData)

    @model_validator(mode="after")
    def _default_id(self) -> Edge:
        if not self.id:
            self.id = f"edge-{self.source}-{self.source_handle}-{self.target}-{self.target_handle}"
        return self

    @property
    def has_pause(self) -> bool:
        return self.data.has_pause

    @property
    def is_image_edge(self) -> bool:
        return self.target_handle is None or self.target_handle in IMAGE_HANDLES

    @property
    def is_text_edge(self) -> bool:
        return self.target_handle == TEXT_HANDLE


class Group(WireModel):
    id: str
    name: str
    color: GroupColor = "neutral"
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    locked: bool = False


class WorkflowDocument(WireModel):
    """Persisted workflow file (``version`` 1)."""

    version: Literal[1] = 1
    id: str | None = None
    name: str
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    edge_style: Literal["angular", "curved"] = "angular"
    groups: dict[str, Group] | None = None

    @model_validator(mode="after")
    def _check_group_membership(self) -> WorkflowDocument:
        groups = self.groups or {}
        for node in self.nodes:
            if node.group_id is not None and node.group_id not in groups:
                raise ValueError(f"Node '{node.id}' references unknown group '{node.group_id}'")
        return self
