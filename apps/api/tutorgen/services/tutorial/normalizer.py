"""Coerce a parsed-but-untrusted model document into a valid ``Tutorial``.

Every rule here is total: any JSON-shaped input produces a tutorial, and each
correction is recorded as a ``ValidationInconsistency`` instead of raised.
Running the normalizer on its own output yields the same document, so ids
are derived from titles and positions only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Any

from tutorgen.domain.tutorial.schema import (
    BLANK_TYPES,
    CLASS_NODE_TYPES,
    FLOWCHART_DIRECTIONS,
    FLOWCHART_NODE_TYPES,
    LESSON_TYPES,
    MCQ_OPTION_COUNT,
    Tutorial,
)
from tutorgen.services.tutorial.errors import ValidationInconsistency
from tutorgen.services.tutorial.prompt_builder import normalize_difficulty


logger = logging.getLogger(__name__)

_OPTION_IDS = "abcd"
_FILLER_OPTIONS = (
    "None of the above",
    "All of the above",
    "It depends on the runtime environment",
    "It is not supported by the language",
)
_TITLE_NUMBERING = re.compile(r"^(?:\s*(?:lesson|chapter|part)?\s*\d+\s*[.):\-]\s+)+", re.IGNORECASE)
_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


@dataclass
class NormalizationResult:
    tutorial: Tutorial
    issues: list[ValidationInconsistency] = field(default_factory=list)


class _IssueLog:
    def __init__(self) -> None:
        self.items: list[ValidationInconsistency] = []

    def add(self, path: str, code: str, detail: str = "") -> None:
        self.items.append(ValidationInconsistency(path=path, code=code, detail=detail))


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return ""


def _as_non_empty_str(value: Any, fallback: str) -> str:
    text = _as_text(value)
    return text if text else fallback


def _optional_str(value: Any) -> str | None:
    text = _as_text(value)
    return text or None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items: list[str] = []
    for item in value:
        text = _as_text(item)
        if text:
            items.append(text)
    return items


def _dedupe_casefold(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        key = item.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result


def _slugify(text: str, fallback: str = "item") -> str:
    slug = _SLUG_SEPARATORS.sub("-", text.lower()).strip("-")
    return slug[:60].rstrip("-") or fallback


def _unique_id(candidate: str, seen: set[str]) -> str:
    unique = candidate
    suffix = 2
    while unique in seen:
        unique = f"{candidate}-{suffix}"
        suffix += 1
    seen.add(unique)
    return unique


def _strip_title_numbering(title: str) -> str:
    stripped = _TITLE_NUMBERING.sub("", title).strip()
    return stripped or title


def _in_language(language: str) -> str:
    return f" in {language}" if language else ""


def _normalize_flowchart(raw: dict[str, Any], path: str, issues: _IssueLog) -> dict[str, Any] | None:
    nodes: list[dict[str, Any]] = []
    seen: set[str] = set()
    raw_nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    for idx, item in enumerate(raw_nodes, start=1):
        if not isinstance(item, dict):
            continue
        node_id = _as_non_empty_str(item.get("id"), f"n{idx}")
        if node_id in seen:
            issues.add(f"{path}.nodes[{idx - 1}]", "duplicate_node_id", node_id)
            continue
        seen.add(node_id)
        node_type = _as_text(item.get("type")).lower()
        if node_type not in FLOWCHART_NODE_TYPES:
            node_type = "process"
        node: dict[str, Any] = {
            "id": node_id,
            "label": _as_non_empty_str(item.get("label"), node_id),
            "type": node_type,
            "description": _as_text(item.get("description")),
        }
        shape = _optional_str(item.get("shape"))
        if shape:
            node["shape"] = shape
        nodes.append(node)

    if not nodes:
        issues.add(path, "diagram_dropped", "flowchart_without_nodes")
        return None

    connections: list[dict[str, Any]] = []
    raw_connections = raw.get("connections") if isinstance(raw.get("connections"), list) else []
    for idx, item in enumerate(raw_connections):
        if not isinstance(item, dict):
            continue
        source = _as_text(item.get("from"))
        target = _as_text(item.get("to"))
        if source not in seen or target not in seen:
            issues.add(f"{path}.connections[{idx}]", "dangling_edge", f"{source}->{target}")
            continue
        connection: dict[str, Any] = {
            "from": source,
            "to": target,
            "label": _as_text(item.get("label")),
            "type": _as_non_empty_str(item.get("type"), "arrow"),
            "description": _as_text(item.get("description")),
        }
        condition = _optional_str(item.get("condition"))
        if condition:
            connection["condition"] = condition
        connections.append(connection)

    # 분기 수는 기록만 하고 고치지 않는다.
    for node in nodes:
        if node["type"] != "decision":
            continue
        outgoing = sum(1 for conn in connections if conn["from"] == node["id"])
        if outgoing != 2:
            issues.add(path, "decision_branch_count", f"{node['id']}:{outgoing}")

    direction = _as_text(raw.get("direction")).upper()
    return {
        "type": "flowchart",
        "title": _as_text(raw.get("title")),
        "direction": direction if direction in FLOWCHART_DIRECTIONS else "TD",
        "nodes": nodes,
        "connections": connections,
    }


def _normalize_members(value: Any, *, kind: str) -> list[dict[str, Any]]:
    members: list[dict[str, Any]] = []
    if not isinstance(value, list):
        return members
    for item in value:
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        name = _as_text(item.get("name"))
        if not name:
            continue
        member = {
            "name": name,
            "visibility": _as_non_empty_str(item.get("visibility"), "+"),
            "description": _as_text(item.get("description")),
        }
        if kind == "method":
            member["returnType"] = _as_non_empty_str(item.get("returnType"), "void")
        else:
            member["type"] = _as_text(item.get("type"))
        members.append(member)
    return members


def _normalize_class_diagram(raw: dict[str, Any], path: str, issues: _IssueLog) -> dict[str, Any] | None:
    classes: list[dict[str, Any]] = []
    seen: set[str] = set()
    raw_classes = raw.get("classes") if isinstance(raw.get("classes"), list) else []
    for idx, item in enumerate(raw_classes, start=1):
        if not isinstance(item, dict):
            continue
        label = _as_text(item.get("label")) or _as_text(item.get("name"))
        class_id = _as_non_empty_str(item.get("id"), _slugify(label, f"class{idx}"))
        if class_id in seen:
            issues.add(f"{path}.classes[{idx - 1}]", "duplicate_class_id", class_id)
            continue
        seen.add(class_id)
        class_type = _as_text(item.get("type")).lower()
        classes.append(
            {
                "id": class_id,
                "label": label or class_id,
                "type": class_type if class_type in CLASS_NODE_TYPES else "class",
                "description": _as_text(item.get("description")),
                "attributes": _normalize_members(item.get("attributes"), kind="attribute"),
                "methods": _normalize_members(item.get("methods"), kind="method"),
            }
        )

    if not classes:
        issues.add(path, "diagram_dropped", "class_diagram_without_classes")
        return None

    relationships: list[dict[str, Any]] = []
    raw_relationships = raw.get("relationships") if isinstance(raw.get("relationships"), list) else []
    for idx, item in enumerate(raw_relationships):
        if not isinstance(item, dict):
            continue
        source = _as_text(item.get("from"))
        target = _as_text(item.get("to"))
        if source not in seen or target not in seen:
            issues.add(f"{path}.relationships[{idx}]", "dangling_edge", f"{source}->{target}")
            continue
        relationships.append(
            {
                "from": source,
                "to": target,
                "label": _as_text(item.get("label")),
                "type": _as_non_empty_str(item.get("type"), "association"),
                "description": _as_text(item.get("description")),
            }
        )

    return {
        "type": "class",
        "title": _as_text(raw.get("title")),
        "classes": classes,
        "relationships": relationships,
    }


def normalize_diagram(value: Any, path: str, issues: _IssueLog) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict) or not value:
        issues.add(path, "diagram_dropped", "not_an_object")
        return None

    diagram_type = _as_text(value.get("type")).lower()
    if diagram_type == "flowchart":
        return _normalize_flowchart(value, path, issues)
    if diagram_type == "class":
        return _normalize_class_diagram(value, path, issues)
    issues.add(path, "diagram_dropped", f"unknown_type:{diagram_type or 'missing'}")
    return None


def _attach_diagram(target: dict[str, Any], raw: dict[str, Any], path: str, issues: _IssueLog) -> None:
    diagram = normalize_diagram(raw.get("diagram_data"), f"{path}.diagram_data", issues)
    if diagram is not None:
        target["diagram_data"] = diagram


def _normalize_concept_content(
    content: dict[str, Any],
    *,
    title: str,
    language: str,
    path: str,
    issues: _IssueLog,
) -> dict[str, Any]:
    explanation = _as_text(content.get("explanation"))
    if not explanation:
        issues.add(f"{path}.explanation", "missing_explanation")
        explanation = (
            f"Learn about {title} concepts and their practical applications{_in_language(language)} programming."
        )

    key_points = _string_list(content.get("keyPoints"))
    if not key_points:
        key_points = [f"Core ideas behind {title}", "How it is used in practice"]

    code_examples: list[dict[str, Any]] = []
    raw_examples = content.get("codeExamples") if isinstance(content.get("codeExamples"), list) else []
    for idx, item in enumerate(raw_examples):
        if not isinstance(item, dict) or not _as_text(item.get("code")):
            issues.add(f"{path}.codeExamples[{idx}]", "example_dropped")
            continue
        example: dict[str, Any] = {
            "title": _as_non_empty_str(item.get("title"), f"Example {len(code_examples) + 1}"),
            "code": str(item.get("code")).strip("\n"),
            "explanation": _as_text(item.get("explanation")),
        }
        _attach_diagram(example, item, f"{path}.codeExamples[{idx}]", issues)
        code_examples.append(example)

    result: dict[str, Any] = {
        "explanation": explanation,
        "keyPoints": key_points,
        "codeExamples": code_examples,
        "practiceHints": _string_list(content.get("practiceHints")),
        "commonMistakes": _string_list(content.get("commonMistakes")),
        "bestPractices": _string_list(content.get("bestPractices")),
    }
    _attach_diagram(result, content, path, issues)
    return result


def _questions_of(content: dict[str, Any], flat_keys: tuple[str, ...], path: str, issues: _IssueLog) -> list[Any]:
    questions = content.get("questions")
    if isinstance(questions, list):
        return questions
    if any(key in content for key in flat_keys):
        issues.add(path, "flat_content_wrapped")
        return [content]
    return []


def _normalize_mcq_options(raw_options: Any) -> tuple[list[dict[str, Any]], bool]:
    """Exactly four options, exactly one correct. Returns (options, changed)."""
    changed = False
    options: list[dict[str, Any]] = []
    for item in raw_options if isinstance(raw_options, list) else []:
        if isinstance(item, dict):
            text = _as_text(item.get("text"))
            option = {"id": _as_text(item.get("id")), "text": text, "isCorrect": item.get("isCorrect") is True}
        else:
            text = _as_text(item)
            option = {"id": "", "text": text, "isCorrect": False}
        if not text:
            changed = True
            continue
        options.append(option)

    if len(options) > MCQ_OPTION_COUNT:
        changed = True
        kept = options[:MCQ_OPTION_COUNT]
        if not any(opt["isCorrect"] for opt in kept):
            late_correct = next((opt for opt in options[MCQ_OPTION_COUNT:] if opt["isCorrect"]), None)
            if late_correct is not None:
                kept[-1] = late_correct
        options = kept

    if len(options) < MCQ_OPTION_COUNT:
        changed = True
        used = {opt["text"].casefold() for opt in options}
        fillers = [text for text in _FILLER_OPTIONS if text.casefold() not in used]
        while len(options) < MCQ_OPTION_COUNT:
            text = fillers.pop(0) if fillers else f"Option {len(options) + 1}"
            options.append({"id": "", "text": text, "isCorrect": False})

    correct = [idx for idx, opt in enumerate(options) if opt["isCorrect"]]
    if len(correct) != 1:
        changed = True
        winner = correct[0] if correct else 0
        for idx, opt in enumerate(options):
            opt["isCorrect"] = idx == winner

    ids = [opt["id"] for opt in options]
    if any(not option_id for option_id in ids) or len(set(ids)) != len(ids):
        changed = True
        for option_id, opt in zip(_OPTION_IDS, options):
            opt["id"] = option_id

    return options, changed


def _placeholder_mcq_question(title: str, difficulty: int) -> dict[str, Any]:
    return {
        "id": "q1",
        "question": f"Which statement best describes {title}?",
        "options": [
            {"id": "a", "text": f"{title} is one of the core ideas covered in this lesson", "isCorrect": True},
            {"id": "b", "text": "It is unrelated to the rest of the tutorial", "isCorrect": False},
            {"id": "c", "text": "It can only be used in other programming languages", "isCorrect": False},
            {"id": "d", "text": "It has no practical use in real projects", "isCorrect": False},
        ],
        "explanation": f"This lesson introduces {title}; review the concept lessons for the details.",
        "difficulty": difficulty,
        "coerced": True,
    }


def _normalize_mcq_content(
    content: dict[str, Any],
    *,
    title: str,
    difficulty: int,
    path: str,
    issues: _IssueLog,
) -> dict[str, Any]:
    questions: list[dict[str, Any]] = []
    seen: set[str] = set()
    raw_questions = _questions_of(content, ("question", "options"), path, issues)
    for idx, item in enumerate(raw_questions):
        q_path = f"{path}.questions[{idx}]"
        if not isinstance(item, dict):
            issues.add(q_path, "question_dropped")
            continue
        options, changed = _normalize_mcq_options(item.get("options"))
        if changed:
            issues.add(f"{q_path}.options", "mcq_coerced")
        question: dict[str, Any] = {
            "id": _unique_id(_as_non_empty_str(item.get("id"), f"q{len(questions) + 1}"), seen),
            "question": _as_non_empty_str(item.get("question"), f"Which statement about {title} is correct?"),
            "options": options,
            "explanation": _as_text(item.get("explanation")),
            "difficulty": normalize_difficulty(item.get("difficulty"), difficulty),
            "coerced": changed or item.get("coerced") is True,
        }
        snippet = item.get("codeSnippet")
        if isinstance(snippet, str) and snippet.strip():
            question["codeSnippet"] = snippet.strip("\n")
        _attach_diagram(question, item, q_path, issues)
        questions.append(question)

    if not questions:
        issues.add(path, "missing_questions")
        questions.append(_placeholder_mcq_question(title, difficulty))
    return {"questions": questions}


def _normalize_code_blocks(item: dict[str, Any], q_path: str, issues: _IssueLog) -> list[dict[str, str]]:
    blocks: list[dict[str, str]] = []
    seen: set[str] = set()
    raw_blocks = item.get("codeBlocks") if isinstance(item.get("codeBlocks"), list) else []
    for idx, block in enumerate(raw_blocks, start=1):
        if isinstance(block, str):
            block = {"content": block}
        if not isinstance(block, dict):
            continue
        text = block.get("content")
        if not isinstance(text, str) or not text.strip():
            continue
        raw_id = _as_text(block.get("id"))
        block_id = _unique_id(raw_id or f"block{idx}", seen)
        if raw_id and block_id != raw_id:
            issues.add(f"{q_path}.codeBlocks[{idx - 1}]", "duplicate_block_id", raw_id)
        blocks.append({"id": block_id, "content": text.strip("\n")})

    if not blocks:
        target = item.get("targetCode")
        lines = [line for line in str(target or "").splitlines() if line.strip()]
        if lines:
            issues.add(f"{q_path}.codeBlocks", "blocks_derived_from_target")
            blocks = [{"id": f"block{idx}", "content": line} for idx, line in enumerate(lines, start=1)]
    return blocks


def _normalize_correct_order(raw_order: Any, blocks: list[dict[str, str]]) -> list[str]:
    known = [block["id"] for block in blocks]
    order: list[str] = []
    for block_id in raw_order if isinstance(raw_order, list) else []:
        text = _as_text(block_id)
        if text in known and text not in order:
            order.append(text)
    order.extend(block_id for block_id in known if block_id not in order)
    return order


def _normalize_codeblock_content(
    content: dict[str, Any],
    *,
    difficulty: int,
    path: str,
    issues: _IssueLog,
) -> dict[str, Any] | None:
    questions: list[dict[str, Any]] = []
    seen: set[str] = set()
    raw_questions = _questions_of(content, ("codeBlocks", "targetCode", "correctOrder"), path, issues)
    for idx, item in enumerate(raw_questions):
        q_path = f"{path}.questions[{idx}]"
        if not isinstance(item, dict):
            issues.add(q_path, "question_dropped")
            continue
        blocks = _normalize_code_blocks(item, q_path, issues)
        if not blocks:
            issues.add(q_path, "question_dropped", "no_code_blocks")
            continue
        correct_order = _normalize_correct_order(item.get("correctOrder"), blocks)
        if correct_order != item.get("correctOrder"):
            issues.add(f"{q_path}.correctOrder", "correct_order_repaired")
        question: dict[str, Any] = {
            "id": _unique_id(_as_non_empty_str(item.get("id"), f"q{len(questions) + 1}"), seen),
            "scenario": _as_text(item.get("scenario")),
            "targetCode": str(item.get("targetCode") or "").strip("\n")
            or "\n".join(block["content"] for block in _ordered_blocks(blocks, correct_order)),
            "codeBlocks": blocks,
            "correctOrder": correct_order,
            "hints": _string_list(item.get("hints")),
            "difficulty": normalize_difficulty(item.get("difficulty"), difficulty),
        }
        _attach_diagram(question, item, q_path, issues)
        questions.append(question)

    if not questions:
        return None
    return {"questions": questions}


def _ordered_blocks(blocks: list[dict[str, str]], order: list[str]) -> list[dict[str, str]]:
    by_id = {block["id"]: block for block in blocks}
    return [by_id[block_id] for block_id in order]


def _normalize_blank(item: Any, idx: int, seen: set[str], b_path: str, issues: _IssueLog) -> dict[str, Any] | None:
    if not isinstance(item, dict):
        issues.add(b_path, "blank_dropped")
        return None
    answer = _as_text(item.get("correctAnswer")) or _as_text(item.get("answer"))
    if not answer:
        issues.add(b_path, "blank_dropped", "missing_correct_answer")
        return None

    raw_type = _as_text(item.get("type")).lower()
    blank_type = raw_type if raw_type in BLANK_TYPES else "text"
    if raw_type and raw_type != blank_type:
        issues.add(f"{b_path}.type", "blank_type_coerced", raw_type)

    options: list[str] | None = None
    if blank_type == "dropdown":
        options = []
        for option in _string_list(item.get("options")):
            if option not in options:
                options.append(option)
        if not options:
            issues.add(b_path, "empty_dropdown_demoted")
            blank_type = "text"
            options = None
        elif answer not in options:
            issues.add(f"{b_path}.options", "answer_added_to_options")
            options.append(answer)
    elif _string_list(item.get("options")):
        issues.add(f"{b_path}.options", "text_blank_options_dropped")

    blank: dict[str, Any] = {
        "id": _unique_id(_as_non_empty_str(item.get("id"), f"blank{idx}"), seen),
        "type": blank_type,
        "correctAnswer": answer,
        "explanation": _as_text(item.get("explanation")),
    }
    if options is not None:
        blank["options"] = options
    hint = _optional_str(item.get("hint"))
    if hint:
        blank["hint"] = hint
    return blank


def _normalize_fill_in_blanks_content(
    content: dict[str, Any],
    *,
    difficulty: int,
    path: str,
    issues: _IssueLog,
) -> dict[str, Any] | None:
    questions: list[dict[str, Any]] = []
    seen: set[str] = set()
    raw_questions = _questions_of(content, ("codeTemplate", "blanks"), path, issues)
    for idx, item in enumerate(raw_questions):
        q_path = f"{path}.questions[{idx}]"
        if not isinstance(item, dict):
            issues.add(q_path, "question_dropped")
            continue

        blanks: list[dict[str, Any]] = []
        blank_ids: set[str] = set()
        raw_blanks = item.get("blanks") if isinstance(item.get("blanks"), list) else []
        for b_idx, raw_blank in enumerate(raw_blanks):
            blank = _normalize_blank(raw_blank, b_idx + 1, blank_ids, f"{q_path}.blanks[{b_idx}]", issues)
            if blank is not None:
                blanks.append(blank)
        if not blanks:
            issues.add(q_path, "question_dropped", "no_blanks")
            continue

        template = str(item.get("codeTemplate") or "").strip("\n")
        for blank in blanks:
            if "{{" + blank["id"] + "}}" not in template:
                issues.add(f"{q_path}.codeTemplate", "placeholder_missing", blank["id"])

        raw_solution = item.get("solution") if isinstance(item.get("solution"), dict) else {}
        solution: dict[str, Any] = {
            "completeCode": str(raw_solution.get("completeCode") or "").strip("\n"),
            "explanation": _as_text(raw_solution.get("explanation")),
        }
        _attach_diagram(solution, raw_solution, f"{q_path}.solution", issues)

        question: dict[str, Any] = {
            "id": _unique_id(_as_non_empty_str(item.get("id"), f"q{len(questions) + 1}"), seen),
            "scenario": _as_text(item.get("scenario")),
            "codeTemplate": template,
            "blanks": blanks,
            "hints": _string_list(item.get("hints")),
            "solution": solution,
            "difficulty": normalize_difficulty(item.get("difficulty"), difficulty),
        }
        _attach_diagram(question, item, q_path, issues)
        questions.append(question)

    if not questions:
        return None
    return {"questions": questions}


_OBJECTIVE_TEMPLATES = {
    "concept": "Understand the key ideas of {title}",
    "mcq": "Check your understanding of {title}",
    "codeblock_rearranging": "Assemble working code that applies {title}",
    "fill_in_blanks": "Complete code that uses {title}",
}


def _fallback_lesson(topic: str, language: str) -> dict[str, Any]:
    subject = topic or "this topic"
    return {
        "title": f"Introduction to {subject}",
        "type": "concept",
        "learningObjectives": [f"Understand the fundamentals of {subject}"],
        "keyTopics": [item for item in (topic, language) if item] or ["fundamentals"],
        "content": {
            "explanation": (
                f"This lesson introduces {subject}{_in_language(language)}. "
                "The full tutorial could not be generated, so start from the core ideas and try again later."
            ),
            "keyPoints": [f"What {subject} is", "Where it is used", "How to practise it"],
            "practiceHints": ["Write a small program that uses the concept", "Change one thing at a time and observe"],
        },
    }


def _normalize_lesson(
    item: dict[str, Any],
    *,
    position: int,
    seen_ids: set[str],
    language: str,
    difficulty: int,
    issues: _IssueLog,
) -> dict[str, Any]:
    path = f"lessons[{position - 1}]"
    title = _strip_title_numbering(_as_non_empty_str(item.get("title"), f"Lesson {position}"))

    raw_type = _as_text(item.get("type")).lower()
    lesson_type = raw_type if raw_type in LESSON_TYPES else "concept"
    if raw_type != lesson_type:
        issues.add(f"{path}.type", "unknown_lesson_type", raw_type or "missing")

    raw_id = _as_text(item.get("id"))
    lesson_id = _unique_id(raw_id or f"lesson-{position}-{_slugify(title, 'lesson')}", seen_ids)
    if raw_id and lesson_id != raw_id:
        issues.add(f"{path}.id", "duplicate_id", raw_id)

    if item.get("order") != position and "order" in item:
        issues.add(f"{path}.order", "order_rewritten", str(item.get("order")))

    content = item.get("content") if isinstance(item.get("content"), dict) else {}
    content_path = f"{path}.content"
    normalized_content: dict[str, Any] | None = None
    if lesson_type == "mcq":
        normalized_content = _normalize_mcq_content(
            content, title=title, difficulty=difficulty, path=content_path, issues=issues
        )
    elif lesson_type == "codeblock_rearranging":
        normalized_content = _normalize_codeblock_content(
            content, difficulty=difficulty, path=content_path, issues=issues
        )
    elif lesson_type == "fill_in_blanks":
        normalized_content = _normalize_fill_in_blanks_content(
            content, difficulty=difficulty, path=content_path, issues=issues
        )
    if normalized_content is None:
        if lesson_type != "concept":
            issues.add(path, "empty_exercise_demoted", lesson_type)
            lesson_type = "concept"
        normalized_content = _normalize_concept_content(
            content, title=title, language=language, path=content_path, issues=issues
        )

    objectives = _string_list(item.get("learningObjectives"))
    if not objectives:
        issues.add(f"{path}.learningObjectives", "missing_learning_objectives")
        objectives = [_OBJECTIVE_TEMPLATES[lesson_type].format(title=title)]

    key_topics = _dedupe_casefold(_string_list(item.get("keyTopics")))
    if not key_topics:
        issues.add(f"{path}.keyTopics", "missing_key_topics")
        key_topics = [title]

    return {
        "id": lesson_id,
        "title": title,
        "type": lesson_type,
        "learningObjectives": objectives,
        "keyTopics": key_topics,
        "order": position,
        "content": normalized_content,
    }


def _normalize_reference(raw: Any, *, title: str) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None

    examples: list[dict[str, Any]] = []
    for item in raw.get("examples") if isinstance(raw.get("examples"), list) else []:
        if not isinstance(item, dict):
            continue
        example: dict[str, Any] = {
            "title": _as_non_empty_str(item.get("title"), f"Example {len(examples) + 1}"),
            "description": _as_text(item.get("description")),
            "code": str(item.get("code") or "").strip("\n"),
            "explanation": _as_text(item.get("explanation")),
        }
        output = item.get("output")
        if isinstance(output, str) and output.strip():
            example["output"] = output.strip("\n")
        examples.append(example)

    mistakes: list[dict[str, str]] = []
    for item in raw.get("common_mistakes") if isinstance(raw.get("common_mistakes"), list) else []:
        if isinstance(item, str):
            item = {"mistake": item}
        if not isinstance(item, dict) or not _as_text(item.get("mistake")):
            continue
        mistakes.append(
            {
                "mistake": _as_text(item.get("mistake")),
                "why_wrong": _as_text(item.get("why_wrong")),
                "correct_approach": _as_text(item.get("correct_approach")),
            }
        )

    reference: dict[str, Any] = {
        "title": _as_non_empty_str(raw.get("title"), title),
        "subtitle": _as_text(raw.get("subtitle")),
        "introduction": _as_text(raw.get("introduction")),
        "examples": examples,
        "key_points": _string_list(raw.get("key_points")),
        "common_mistakes": mistakes,
    }

    guide = raw.get("syntax_guide")
    if isinstance(guide, dict):
        parameters = []
        for item in guide.get("parameters") if isinstance(guide.get("parameters"), list) else []:
            if not isinstance(item, dict) or not _as_text(item.get("name")):
                continue
            parameters.append(
                {
                    "name": _as_text(item.get("name")),
                    "description": _as_text(item.get("description")),
                    "required": item.get("required") is True,
                }
            )
        reference["syntax_guide"] = {
            "basic_syntax": str(guide.get("basic_syntax") or "").strip("\n"),
            "parameters": parameters,
        }
    return reference


def _unwrap_document(raw: Any, issues: _IssueLog) -> dict[str, Any]:
    if isinstance(raw, list):
        issues.add("$", "top_level_array_as_lessons")
        return {"lessons": raw}
    if not isinstance(raw, dict):
        issues.add("$", "not_an_object", type(raw).__name__)
        return {}
    if "lessons" not in raw and len(raw) == 1:
        key, inner = next(iter(raw.items()))
        if isinstance(inner, dict):
            issues.add("$", "wrapper_unwrapped", str(key))
            return inner
    return raw


def normalize_tutorial(
    raw: Any,
    *,
    topic: str = "",
    language: str = "",
    difficulty: int = 1,
    lesson_count: int | None = None,
) -> NormalizationResult:
    issues = _IssueLog()
    topic = _as_text(topic)
    language = _as_text(language)
    doc = _unwrap_document(raw, issues)

    title = _as_non_empty_str(doc.get("title"), topic or "Untitled tutorial")
    tutorial_difficulty = normalize_difficulty(doc.get("difficulty"), normalize_difficulty(difficulty))

    lessons: list[dict[str, Any]] = []
    seen_ids: set[str] = set()
    raw_lessons = doc.get("lessons") if isinstance(doc.get("lessons"), list) else []
    for idx, item in enumerate(raw_lessons):
        if not isinstance(item, dict):
            issues.add(f"lessons[{idx}]", "lesson_dropped", type(item).__name__)
            continue
        lessons.append(
            _normalize_lesson(
                item,
                position=len(lessons) + 1,
                seen_ids=seen_ids,
                language=language,
                difficulty=tutorial_difficulty,
                issues=issues,
            )
        )

    if not lessons:
        issues.add("lessons", "missing_lessons")
        lessons.append(
            _normalize_lesson(
                _fallback_lesson(topic or title, language),
                position=1,
                seen_ids=seen_ids,
                language=language,
                difficulty=tutorial_difficulty,
                issues=_IssueLog(),
            )
        )

    if isinstance(lesson_count, int) and not isinstance(lesson_count, bool) and lesson_count != len(lessons):
        issues.add("lessons", "lesson_count_mismatch", f"requested={lesson_count} returned={len(lessons)}")

    objectives = _string_list(doc.get("learningObjectives"))
    if not objectives:
        issues.add("learningObjectives", "missing_learning_objectives")
        objectives = [f"Understand the fundamentals of {title}"]

    key_topics = _dedupe_casefold(_string_list(doc.get("keyTopics")))
    if not key_topics:
        issues.add("keyTopics", "missing_key_topics")
        key_topics = _dedupe_casefold([item for item in (topic or title, language) if item])

    document: dict[str, Any] = {
        "id": _as_non_empty_str(doc.get("id"), f"tutorial-{_slugify(title, 'untitled')}"),
        "title": title,
        "description": _as_non_empty_str(
            doc.get("description"),
            f"A comprehensive tutorial about {title}{_in_language(language)} programming",
        ),
        "learningObjectives": objectives,
        "keyTopics": key_topics,
        "difficulty": tutorial_difficulty,
        "lessons": lessons,
        "practicalApplications": _string_list(doc.get("practicalApplications")),
        "tags": _dedupe_casefold(_string_list(doc.get("tags"))),
    }
    reference = _normalize_reference(doc.get("reference"), title=title)
    if reference is not None:
        document["reference"] = reference

    for issue in issues.items:
        logger.info("normalization issue path=%s code=%s detail=%s", issue.path, issue.code, issue.detail)

    return NormalizationResult(tutorial=Tutorial.model_validate(document), issues=issues.items)


def build_fallback_tutorial(topic: str, language: str, difficulty: int = 1) -> Tutorial:
    topic = _as_text(topic)
    language = _as_text(language)
    subject = topic or "Programming"
    raw = {
        "title": subject,
        "description": f"A comprehensive tutorial about {subject}{_in_language(language)} programming",
        "learningObjectives": [
            f"Understand the fundamentals of {subject}",
            f"Apply {subject}{_in_language(language)} with simple examples",
        ],
        "keyTopics": [item for item in (topic, language) if item],
        "difficulty": difficulty,
        "lessons": [_fallback_lesson(topic, language)],
        "tags": [item for item in (language, "fallback") if item],
    }
    return normalize_tutorial(raw, topic=topic, language=language, difficulty=difficulty).tutorial
