from typing import Any

from tutorgen.domain.tutorial.schema import (
    BLANK_TYPES,
    DIAGRAM_TYPES,
    FLOWCHART_DIRECTIONS,
    LESSON_TYPES,
    MCQ_OPTION_COUNT,
)


DEFAULT_LESSON_COUNT = 5
MAX_LESSON_COUNT = 20

DIFFICULTY_LABELS = {
    1: "Beginner - Focus on fundamentals with clear explanations, simple examples, and step-by-step guidance",
    2: "Intermediate - Balance explanation with practical application, introduce complex patterns and real-world scenarios",
    3: "Advanced - Cover sophisticated concepts with professional practices, optimization, and complex problem-solving",
}

_LESSON_TYPE_LIST = ", ".join(LESSON_TYPES)
_DIAGRAM_TYPE_LIST = ", ".join(f'"{kind}"' for kind in DIAGRAM_TYPES)
_BLANK_TYPE_LIST = "|".join(BLANK_TYPES)
_DIRECTION_LIST = ", ".join(f'"{item}"' for item in FLOWCHART_DIRECTIONS)


CORE_TUTORIAL_REQUIREMENTS = f"""You are an expert programming instructor creating comprehensive multi-lesson programming tutorials.

CRITICAL REQUIREMENTS:
1. Generate tutorials using {len(LESSON_TYPES)} lesson types: {_LESSON_TYPE_LIST}
2. Write all prose in clear, professional English
3. Create progressive difficulty and a logical lesson flow
4. Include complete, working code examples with clear explanations
5. Every lesson MUST carry a non-empty "learningObjectives" array and a non-empty "keyTopics" array
6. Return valid JSON matching the exact structure provided below, nothing else
7. Fill optional fields whenever they can hold meaningful data
8. Include a W3Schools-style reference page for the main concept in the "reference" field

LESSON TYPE SPECIFICATIONS:

CONCEPT LESSONS:
- Thorough explanation with real-world programming context
- 2-7 key points summarising the core ideas
- 1-10 complete, working code examples, each with a detailed explanation
- Diagram data for examples with logical flow (loops, conditions, multi-step processes)
- 2-4 practical hints, common mistakes and best practices

MCQ LESSONS:
- 3-10 questions per lesson, never a single question
- Each question has exactly {MCQ_OPTION_COUNT} options and exactly 1 option with "isCorrect": true
- Put code ONLY in the "codeSnippet" field, never inside the question text
- Do not reveal the correct answer in the question text or in option ids
- Explain why the correct answer is right and why the others are wrong
- Mix easy, medium and hard questions

CODE BLOCK REARRANGING LESSONS:
- 2-7 questions per lesson, each with a realistic scenario
- Split the target code into 3-8 unique, preferably multi-line blocks (no two blocks identical, not even lone closing braces)
- "correctOrder" lists every block id exactly once
- Progressive hints that guide without giving the full solution

FILL IN THE BLANKS LESSONS:
- 2-7 questions per lesson, each with a code template containing 2-5 {{{{blank_id}}}} placeholders
- Blank "type" is "text" or "dropdown"; dropdown blanks list 2-5 distinct options that include the correct answer
- Text blanks have no "options" field
- Keep blanks short so answers can be checked exactly
- Provide the complete solution code and its explanation

REFERENCE PAGE:
- Title, subtitle and an introduction explaining why the concept matters
- 3-10 complete, executable examples with title, description, code, explanation and expected output
- 3-6 key points, 2-4 common mistakes (mistake, why_wrong, correct_approach)
- A syntax guide: basic syntax plus each parameter with a required flag

DIAGRAM RULES:
- ONLY these diagram types are valid: {_DIAGRAM_TYPE_LIST}
- Use "class" for structure (classes, interfaces, inheritance, composition, data structures)
- Use "flowchart" for behaviour (execution flow, loops, branching, algorithms, error handling)
- Flowchart direction is one of {_DIRECTION_LIST}; node types are start, end, process, decision
- Every connection or relationship must reference ids that exist in the same diagram
- Every decision node has exactly 2 outgoing connections (true/false or yes/no)
- Every end node has at least one incoming connection
- At most 6 classes, or 8 nodes and 8 connections, per diagram
- Skip diagrams (use null) for trivial content: single declarations, basic syntax, one-line completions"""


LESSON_PROGRESSION_GUIDELINES = """LESSON PROGRESSION STRATEGY:

BEGINNER TUTORIALS (Difficulty 1):
- Start from fundamental concepts and terminology
- Simple examples without advanced optimisations
- Step-by-step guidance, many hints and warnings about common mistakes
- Each lesson builds directly on the previous one

INTERMEDIATE TUTORIALS (Difficulty 2):
- Assume basic syntax familiarity
- Introduce more complex patterns, algorithms and techniques
- Balance explanation with hands-on practice and real-world scenarios

ADVANCED TUTORIALS (Difficulty 3):
- Sophisticated concepts, design patterns and architectural principles
- Best practices, optimisation and performance considerations
- Complex, professional-grade scenarios that demand critical thinking

LESSON TYPE DISTRIBUTION:
- At least 1 concept lesson for foundational knowledge
- 2-4 interactive assessment lessons (mcq or fill_in_blanks)
- At least 1 codeblock_rearranging lesson when the tutorial has 4 or more lessons
- Interactive lessons follow the concept lessons they reinforce, in the same order"""


CONTENT_QUALITY_STANDARDS = """CONTENT QUALITY REQUIREMENTS:

CODE:
- Complete, runnable programs with the imports, declarations and entry point they need
- Educational comments on the key lines
- Consistent formatting and naming, idiomatic for the target language
- Never truncate code or leave placeholders such as "// code goes here"

EXPLANATIONS:
- Clear and concise for the target skill level
- Analogies and real-world examples for abstract ideas
- Anticipate common questions and misconceptions

INTERACTIVE ELEMENTS:
- Exercises test understanding, not memorisation
- Every answer has meaningful feedback
- Hints guide without giving the answer away

LANGUAGE:
- Plain, international English; avoid idioms
- Examples and scenarios that are universally understandable"""


JSON_STRUCTURE_REQUIREMENTS = f"""CRITICAL JSON STRUCTURE - MUST MATCH EXACTLY:

{{
  "id": "unique-tutorial-identifier",
  "title": "Tutorial title",
  "description": "What students will learn and why it matters",
  "learningObjectives": ["Objective", "Another objective"],
  "keyTopics": ["topic", "another topic"],
  "difficulty": 1,
  "lessons": [
    {{
      "id": "lesson-1-unique-id",
      "title": "Lesson title",
      "type": "{'|'.join(LESSON_TYPES)}",
      "learningObjectives": ["Lesson objective"],
      "keyTopics": ["lesson topic"],
      "order": 1,
      "content": {{ }}
    }}
  ],
  "practicalApplications": ["Real-world use"],
  "tags": ["tag"],
  "reference": {{
    "title": "Reference title",
    "subtitle": "Subtitle",
    "introduction": "Why this concept matters",
    "examples": [{{"title": "", "description": "", "code": "", "explanation": "", "output": ""}}],
    "key_points": ["point"],
    "common_mistakes": [{{"mistake": "", "why_wrong": "", "correct_approach": ""}}],
    "syntax_guide": {{"basic_syntax": "", "parameters": [{{"name": "", "description": "", "required": true}}]}}
  }}
}}

CONTENT BY LESSON TYPE:

concept:
{{
  "explanation": "Concept explanation",
  "keyPoints": ["point"],
  "codeExamples": [{{"title": "", "code": "", "explanation": "", "diagram_data": null}}],
  "practiceHints": ["hint"],
  "diagram_data": null,
  "commonMistakes": ["mistake"],
  "bestPractices": ["practice"]
}}

mcq:
{{
  "questions": [
    {{
      "id": "q1",
      "question": "Question text without code",
      "options": [
        {{"id": "a", "text": "Option A", "isCorrect": false}},
        {{"id": "b", "text": "Option B", "isCorrect": true}},
        {{"id": "c", "text": "Option C", "isCorrect": false}},
        {{"id": "d", "text": "Option D", "isCorrect": false}}
      ],
      "explanation": "Why the correct answer is right",
      "difficulty": 1,
      "codeSnippet": "Code for context, if any",
      "diagram_data": null
    }}
  ]
}}

codeblock_rearranging:
{{
  "questions": [
    {{
      "id": "q1",
      "scenario": "Problem description",
      "targetCode": "Expected final code",
      "codeBlocks": [{{"id": "block1", "content": "code"}}, {{"id": "block2", "content": "code"}}],
      "correctOrder": ["block1", "block2"],
      "hints": ["hint"],
      "difficulty": 1,
      "diagram_data": null
    }}
  ]
}}

fill_in_blanks:
{{
  "questions": [
    {{
      "id": "q1",
      "scenario": "Problem context",
      "codeTemplate": "Code with {{{{blank1}}}} placeholders",
      "blanks": [
        {{"id": "blank1", "type": "{_BLANK_TYPE_LIST}", "correctAnswer": "answer", "options": ["answer", "other"], "hint": "", "explanation": ""}}
      ],
      "hints": ["hint"],
      "solution": {{"completeCode": "Final code", "explanation": "Why it works", "diagram_data": null}},
      "difficulty": 1,
      "diagram_data": null
    }}
  ]
}}

diagram_data (flowchart):
{{
  "type": "flowchart", "title": "", "direction": "TD",
  "nodes": [{{"id": "start", "label": "Start", "type": "start", "shape": "stadium", "description": ""}}],
  "connections": [{{"from": "start", "to": "end", "label": "", "type": "arrow", "condition": "true", "description": ""}}]
}}

diagram_data (class):
{{
  "type": "class", "title": "",
  "classes": [{{"id": "animal", "label": "Animal", "type": "class", "description": "",
    "attributes": [{{"name": "age", "type": "int", "visibility": "+", "description": ""}}],
    "methods": [{{"name": "eat()", "returnType": "void", "visibility": "+", "description": ""}}]}}],
  "relationships": [{{"from": "animal", "to": "dog", "label": "inherits", "type": "inheritance", "description": ""}}]
}}"""


PROMPT_SECTION_KEYS = ("core", "progression", "quality", "schema")


def default_prompt_sections() -> dict[str, str]:
    return {
        "core": CORE_TUTORIAL_REQUIREMENTS,
        "progression": LESSON_PROGRESSION_GUIDELINES,
        "quality": CONTENT_QUALITY_STANDARDS,
        "schema": JSON_STRUCTURE_REQUIREMENTS,
    }


def normalize_lesson_count(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_LESSON_COUNT
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_LESSON_COUNT
    if count < 1:
        return DEFAULT_LESSON_COUNT
    return min(count, MAX_LESSON_COUNT)


def normalize_difficulty(value: Any, fallback: int = 1) -> int:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int) and value in DIFFICULTY_LABELS:
        return value
    if isinstance(value, float) and value.is_integer() and int(value) in DIFFICULTY_LABELS:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit() and int(value.strip()) in DIFFICULTY_LABELS:
        return int(value.strip())
    return fallback


def _resolve_sections(overrides: dict[str, Any] | None) -> dict[str, str]:
    sections = default_prompt_sections()
    if not isinstance(overrides, dict):
        return sections
    for key in PROMPT_SECTION_KEYS:
        value = overrides.get(key)
        if isinstance(value, str) and value.strip():
            sections[key] = value.strip()
    return sections


def _optional_block(value: Any, header: str, footer: str) -> str:
    text = str(value or "").strip()
    if not text:
        return ""
    return f"\n\n{header}\n{text}\n\n{footer}"


def build_tutorial_prompt(
    topic: Any,
    language: Any,
    difficulty: Any = 1,
    lesson_count: Any = DEFAULT_LESSON_COUNT,
    focus_areas: Any = None,
    exclusions: Any = None,
    overrides: dict[str, Any] | None = None,
) -> str:
    topic_text = str(topic or "").strip()
    language_text = str(language or "").strip()
    level = normalize_difficulty(difficulty)
    count = normalize_lesson_count(lesson_count)
    sections = _resolve_sections(overrides)

    focus_block = _optional_block(
        focus_areas,
        "SPECIAL FOCUS AREAS:",
        "Emphasise these focus areas throughout the tutorial with specific examples and practical applications.",
    )
    exclusion_block = _optional_block(
        exclusions,
        "EXCLUSIONS - DO NOT INCLUDE:",
        "Do not mention, explain or use these concepts anywhere in the tutorial, its examples or its exercises.",
    )

    return f"""{sections['core']}

{sections['progression']}

{sections['quality']}

{sections['schema']}

TUTORIAL SPECIFICATION:
Topic: "{topic_text}"
Programming Language: {language_text}
Difficulty Level: {level} - {DIFFICULTY_LABELS[level]}
Number of Lessons: {count}{focus_block}{exclusion_block}

GENERATION REQUIREMENTS:
1. Create exactly {count} lessons with varied, appropriate lesson types
2. Progress logically from fundamental to advanced ideas within "{topic_text}"
3. All code and logic MUST be written in {language_text}, using its syntax and conventions
4. Never truncate code, content or the JSON document itself
5. Number lessons with "order" from 1 to {count} in array order

CRITICAL REMINDERS:
- Every lesson MUST include "learningObjectives" and "keyTopics" as non-empty arrays
- Every MCQ question MUST have exactly {MCQ_OPTION_COUNT} options with exactly 1 marked "isCorrect": true
- Interactive lessons (mcq, fill_in_blanks, codeblock_rearranging) contain multiple questions in a "questions" array
- Dropdown blanks MUST list options that include the correctAnswer; text blanks have no options
- diagram_data "type" is only ever {_DIAGRAM_TYPE_LIST}, or diagram_data is null
- Respond with the JSON object only: no markdown fences, no commentary"""


def build_system_prompt(language: Any) -> str:
    language_text = str(language or "").strip() or "the requested language"
    return (
        "You are an expert programming instructor. Create comprehensive, well-structured tutorials "
        "with diverse lesson types and engaging content in English. "
        f"CRITICAL: ALL CODE EXAMPLES MUST BE IN {language_text.upper()} - use {language_text} syntax, "
        f"conventions and idioms. Each lesson's content MUST match its lesson type exactly: "
        "'concept' lessons need explanation, keyPoints, codeExamples, practiceHints; "
        "'mcq' lessons need a questions array with exactly 4 options each and exactly 1 correct; "
        "'codeblock_rearranging' lessons need questions with scenario, targetCode, codeBlocks, correctOrder; "
        "'fill_in_blanks' lessons need questions with scenario, codeTemplate using {{blank_id}} placeholders, "
        "blanks and solution. Every lesson needs non-empty learningObjectives and keyTopics. "
        "Return only a valid JSON object matching the requested structure."
    )
