"""Declarative shape of a generated tutorial document.

The models here are the single source of truth for field names: the prompt
builder describes them to the model, the normalizer produces dictionaries in
exactly this shape, and ``tutorial_json_schema()`` is what gets sent as a
structured-output hint. Keys are camelCase on the wire (``learningObjectives``)
except for ``diagram_data`` and the reference section, which the tutorial
renderer has always read in snake_case.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


SCHEMA_VERSION = "2"

LESSON_TYPES = ("concept", "mcq", "codeblock_rearranging", "fill_in_blanks")
DIAGRAM_TYPES = ("class", "flowchart")
BLANK_TYPES = ("text", "dropdown")
FLOWCHART_DIRECTIONS = ("TD", "LR", "BT", "RL")
FLOWCHART_NODE_TYPES = ("start", "end", "process", "decision")
CLASS_NODE_TYPES = ("class", "interface", "abstract")
MCQ_OPTION_COUNT = 4


class SchemaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FlowchartNode(SchemaModel):
    id: str
    label: str
    type: Literal["start", "end", "process", "decision"] = "process"
    shape: str | None = None
    description: str = ""


class FlowchartConnection(SchemaModel):
    from_: str = Field(alias="from")
    to: str
    label: str = ""
    type: str = "arrow"
    condition: str | None = None
    description: str = ""


class ClassAttribute(SchemaModel):
    name: str
    type: str = ""
    visibility: str = "+"
    description: str = ""


class ClassMethod(SchemaModel):
    name: str
    returnType: str = "void"
    visibility: str = "+"
    description: str = ""


class DiagramClass(SchemaModel):
    id: str
    label: str
    type: Literal["class", "interface", "abstract"] = "class"
    description: str = ""
    attributes: list[ClassAttribute] = Field(default_factory=list)
    methods: list[ClassMethod] = Field(default_factory=list)


class ClassRelationship(SchemaModel):
    from_: str = Field(alias="from")
    to: str
    label: str = ""
    type: str = "association"
    description: str = ""


class FlowchartDiagram(SchemaModel):
    type: Literal["flowchart"] = "flowchart"
    title: str = ""
    direction: Literal["TD", "LR", "BT", "RL"] = "TD"
    nodes: list[FlowchartNode] = Field(min_length=1)
    connections: list[FlowchartConnection] = Field(default_factory=list)


class ClassDiagram(SchemaModel):
    type: Literal["class"] = "class"
    title: str = ""
    classes: list[DiagramClass] = Field(min_length=1)
    relationships: list[ClassRelationship] = Field(default_factory=list)


DiagramData = Annotated[Union[FlowchartDiagram, ClassDiagram], Field(discriminator="type")]


class CodeExample(SchemaModel):
    title: str
    code: str
    explanation: str = ""
    diagram_data: DiagramData | None = None


class ConceptContent(SchemaModel):
    explanation: str
    keyPoints: list[str] = Field(default_factory=list)
    codeExamples: list[CodeExample] = Field(default_factory=list)
    practiceHints: list[str] = Field(default_factory=list)
    diagram_data: DiagramData | None = None
    commonMistakes: list[str] = Field(default_factory=list)
    bestPractices: list[str] = Field(default_factory=list)


class MCQOption(SchemaModel):
    id: str
    text: str
    isCorrect: bool = False


class MCQQuestion(SchemaModel):
    id: str
    question: str
    options: list[MCQOption] = Field(min_length=MCQ_OPTION_COUNT, max_length=MCQ_OPTION_COUNT)
    explanation: str = ""
    difficulty: int = Field(default=1, ge=1, le=3)
    codeSnippet: str | None = None
    diagram_data: DiagramData | None = None
    # 생성 결과를 보정했는지 여부. 사용자에게 노출하지 않고 품질 모니터링용으로만 쓴다.
    coerced: bool = False


class MCQContent(SchemaModel):
    questions: list[MCQQuestion] = Field(min_length=1)


class CodeBlock(SchemaModel):
    id: str
    content: str


class CodeBlockQuestion(SchemaModel):
    id: str
    scenario: str = ""
    targetCode: str = ""
    codeBlocks: list[CodeBlock] = Field(default_factory=list)
    correctOrder: list[str] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    difficulty: int = Field(default=1, ge=1, le=3)
    diagram_data: DiagramData | None = None


class CodeBlockRearrangingContent(SchemaModel):
    questions: list[CodeBlockQuestion] = Field(min_length=1)


class Blank(SchemaModel):
    id: str
    type: Literal["text", "dropdown"] = "text"
    correctAnswer: str
    options: list[str] | None = None
    hint: str | None = None
    explanation: str = ""


class BlankSolution(SchemaModel):
    completeCode: str = ""
    explanation: str = ""
    diagram_data: DiagramData | None = None


class FillInBlanksQuestion(SchemaModel):
    id: str
    scenario: str = ""
    codeTemplate: str = ""
    blanks: list[Blank] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    solution: BlankSolution = Field(default_factory=BlankSolution)
    difficulty: int = Field(default=1, ge=1, le=3)
    diagram_data: DiagramData | None = None


class FillInBlanksContent(SchemaModel):
    questions: list[FillInBlanksQuestion] = Field(min_length=1)


class LessonBase(SchemaModel):
    id: str
    title: str
    learningObjectives: list[str] = Field(min_length=1)
    keyTopics: list[str] = Field(min_length=1)
    order: int = Field(ge=1)


class ConceptLesson(LessonBase):
    type: Literal["concept"] = "concept"
    content: ConceptContent


class MCQLesson(LessonBase):
    type: Literal["mcq"] = "mcq"
    content: MCQContent


class CodeBlockRearrangingLesson(LessonBase):
    type: Literal["codeblock_rearranging"] = "codeblock_rearranging"
    content: CodeBlockRearrangingContent


class FillInBlanksLesson(LessonBase):
    type: Literal["fill_in_blanks"] = "fill_in_blanks"
    content: FillInBlanksContent


Lesson = Annotated[
    Union[ConceptLesson, MCQLesson, CodeBlockRearrangingLesson, FillInBlanksLesson],
    Field(discriminator="type"),
]


class ReferenceExample(SchemaModel):
    title: str
    description: str = ""
    code: str = ""
    explanation: str = ""
    output: str | None = None


class ReferenceMistake(SchemaModel):
    mistake: str
    why_wrong: str = ""
    correct_approach: str = ""


class SyntaxParameter(SchemaModel):
    name: str
    description: str = ""
    required: bool = False


class SyntaxGuide(SchemaModel):
    basic_syntax: str = ""
    parameters: list[SyntaxParameter] = Field(default_factory=list)


class Reference(SchemaModel):
    title: str
    subtitle: str = ""
    introduction: str = ""
    examples: list[ReferenceExample] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)
    common_mistakes: list[ReferenceMistake] = Field(default_factory=list)
    syntax_guide: SyntaxGuide | None = None


class Tutorial(SchemaModel):
    id: str
    title: str
    description: str = ""
    learningObjectives: list[str] = Field(default_factory=list)
    keyTopics: list[str] = Field(default_factory=list)
    difficulty: int = Field(default=1, ge=1, le=3)
    lessons: list[Lesson] = Field(min_length=1)
    practicalApplications: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    reference: Reference | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def tutorial_json_schema() -> dict[str, Any]:
    return Tutorial.model_json_schema(by_alias=True)
