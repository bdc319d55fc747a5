import unittest

from tutorgen.services.tutorial.json_repair import parse_json_with_repair
from tutorgen.services.tutorial.normalizer import build_fallback_tutorial, normalize_tutorial


def _codes(result) -> set[str]:
    return {issue.code for issue in result.issues}


def _mcq_lesson(options: list, **question_fields) -> dict:
    return {
        "id": "quiz",
        "title": "Quiz",
        "type": "mcq",
        "learningObjectives": ["Check"],
        "keyTopics": ["quiz"],
        "content": {"questions": [{"id": "q1", "question": "Q?", "options": options, **question_fields}]},
    }


def _blank_lesson(blanks: list) -> dict:
    return {
        "title": "Blanks",
        "type": "fill_in_blanks",
        "content": {
            "questions": [
                {
                    "id": "q1",
                    "codeTemplate": "x = {{b1}}",
                    "blanks": blanks,
                    "solution": {"completeCode": "x = 1", "explanation": "assign"},
                }
            ]
        },
    }


class NormalizerScenarioTests(unittest.TestCase):
    def test_empty_lessons_get_one_synthetic_concept_lesson(self) -> None:
        result = normalize_tutorial({"title": "T", "lessons": []}, topic="T", language="Python")
        lessons = result.tutorial.lessons

        self.assertEqual(len(lessons), 1)
        self.assertEqual(lessons[0].type, "concept")
        self.assertEqual(lessons[0].order, 1)
        self.assertTrue(lessons[0].learningObjectives)
        self.assertTrue(lessons[0].keyTopics)
        self.assertIn("missing_lessons", _codes(result))

    def test_missing_lessons_key_and_non_object_input(self) -> None:
        for raw in ({"title": "X"}, None, 42, "text", {"lessons": "not-a-list"}):
            with self.subTest(raw=raw):
                result = normalize_tutorial(raw, topic="Loops", language="Go")
                self.assertGreaterEqual(len(result.tutorial.lessons), 1)

    def test_fenced_mcq_with_two_correct_answers_is_coerced_to_first(self) -> None:
        text = (
            '```json\n{"title":"T","lessons":[{"id":"l1","title":"L","type":"mcq","content":{"questions":'
            '[{"id":"q1","question":"Q","options":[{"id":"a","text":"A","isCorrect":true},'
            '{"id":"b","text":"B","isCorrect":true},{"id":"c","text":"C","isCorrect":false},'
            '{"id":"d","text":"D","isCorrect":false}]}]}}]}\n```'
        )
        parsed = parse_json_with_repair(text)
        self.assertEqual(parsed.stage, 2)

        result = normalize_tutorial(parsed.value, topic="T", language="Python")
        question = result.tutorial.lessons[0].content.questions[0]

        correct = [option for option in question.options if option.isCorrect]
        self.assertEqual(len(correct), 1)
        self.assertEqual(correct[0].text, "A")
        self.assertTrue(question.coerced)
        self.assertIn("mcq_coerced", _codes(result))


class LessonNormalizationTests(unittest.TestCase):
    def test_missing_objectives_and_topics_are_synthesized(self) -> None:
        result = normalize_tutorial(
            {"title": "T", "lessons": [{"title": "Variables", "type": "concept", "content": {"explanation": "E"}}]}
        )
        lesson = result.tutorial.lessons[0]

        self.assertEqual(lesson.learningObjectives, ["Understand the key ideas of Variables"])
        self.assertEqual(lesson.keyTopics, ["Variables"])
        self.assertIn("missing_learning_objectives", _codes(result))
        self.assertIn("missing_key_topics", _codes(result))

    def test_order_is_recomputed_from_position(self) -> None:
        raw = {
            "title": "T",
            "lessons": [
                "junk",
                {"title": "A", "type": "concept", "order": 5},
                {"title": "B", "type": "concept", "order": 5},
            ],
        }
        result = normalize_tutorial(raw)

        self.assertEqual([lesson.order for lesson in result.tutorial.lessons], [1, 2])
        self.assertIn("lesson_dropped", _codes(result))
        self.assertIn("order_rewritten", _codes(result))

    def test_lesson_ids_are_unique_and_titles_unnumbered(self) -> None:
        raw = {
            "title": "T",
            "lessons": [
                {"id": "intro", "title": "1. Intro", "type": "concept"},
                {"id": "intro", "title": "Lesson 2: Loops", "type": "concept"},
                {"title": "3) Functions", "type": "concept"},
            ],
        }
        lessons = normalize_tutorial(raw).tutorial.lessons

        self.assertEqual([lesson.id for lesson in lessons], ["intro", "intro-2", "lesson-3-functions"])
        self.assertEqual([lesson.title for lesson in lessons], ["Intro", "Loops", "Functions"])

    def test_unknown_lesson_type_becomes_concept(self) -> None:
        result = normalize_tutorial({"title": "T", "lessons": [{"title": "Video", "type": "video"}]})

        self.assertEqual(result.tutorial.lessons[0].type, "concept")
        self.assertIn("unknown_lesson_type", _codes(result))

    def test_key_topics_and_tags_are_deduplicated_case_insensitively(self) -> None:
        raw = {
            "title": "T",
            "keyTopics": ["Loops", "loops", "Range", " LOOPS "],
            "tags": ["go", "Go", "basics"],
            "lessons": [{"title": "A", "type": "concept", "keyTopics": ["for", "For"]}],
        }
        tutorial = normalize_tutorial(raw).tutorial

        self.assertEqual(tutorial.keyTopics, ["Loops", "Range"])
        self.assertEqual(tutorial.tags, ["go", "basics"])
        self.assertEqual(tutorial.lessons[0].keyTopics, ["for"])

    def test_top_level_array_is_treated_as_lessons(self) -> None:
        result = normalize_tutorial([{"title": "A", "type": "concept"}], topic="Loops", language="Go")

        self.assertEqual(result.tutorial.title, "Loops")
        self.assertEqual(len(result.tutorial.lessons), 1)

    def test_single_key_wrapper_is_unwrapped(self) -> None:
        result = normalize_tutorial({"tutorial": {"title": "Wrapped", "lessons": [{"title": "A"}]}})

        self.assertEqual(result.tutorial.title, "Wrapped")
        self.assertIn("wrapper_unwrapped", _codes(result))

    def test_lesson_count_divergence_is_accepted_and_recorded(self) -> None:
        raw = {"title": "T", "lessons": [{"title": "A"}, {"title": "B"}]}
        result = normalize_tutorial(raw, lesson_count=5)

        self.assertEqual(len(result.tutorial.lessons), 2)
        self.assertIn("lesson_count_mismatch", _codes(result))

    def test_difficulty_is_clamped_to_request(self) -> None:
        tutorial = normalize_tutorial({"title": "T", "difficulty": 9, "lessons": []}, difficulty=2).tutorial

        self.assertEqual(tutorial.difficulty, 2)


class MCQNormalizationTests(unittest.TestCase):
    def _question(self, options: list, **fields):
        result = normalize_tutorial({"title": "T", "lessons": [_mcq_lesson(options, **fields)]})
        return result.tutorial.lessons[0].content.questions[0]

    def test_valid_question_is_untouched(self) -> None:
        question = self._question(
            [
                {"id": "a", "text": "A", "isCorrect": False},
                {"id": "b", "text": "B", "isCorrect": True},
                {"id": "c", "text": "C", "isCorrect": False},
                {"id": "d", "text": "D", "isCorrect": False},
            ]
        )

        self.assertFalse(question.coerced)
        self.assertEqual([option.isCorrect for option in question.options], [False, True, False, False])

    def test_no_correct_option_marks_first(self) -> None:
        question = self._question(["A", "B", "C", "D"])

        self.assertEqual([option.isCorrect for option in question.options], [True, False, False, False])
        self.assertEqual([option.id for option in question.options], ["a", "b", "c", "d"])
        self.assertTrue(question.coerced)

    def test_extra_options_keep_late_correct_answer(self) -> None:
        question = self._question(
            [
                {"id": "a", "text": "A"},
                {"id": "b", "text": "B"},
                {"id": "c", "text": "C"},
                {"id": "d", "text": "D"},
                {"id": "e", "text": "E", "isCorrect": True},
            ]
        )

        self.assertEqual([option.text for option in question.options], ["A", "B", "C", "E"])
        self.assertTrue(question.options[3].isCorrect)

    def test_short_option_list_is_padded(self) -> None:
        question = self._question([{"id": "x", "text": "Yes", "isCorrect": True}, {"id": "x", "text": "No"}])

        self.assertEqual(len(question.options), 4)
        self.assertEqual(len({option.text for option in question.options}), 4)
        self.assertEqual([option.id for option in question.options], ["a", "b", "c", "d"])
        self.assertEqual(question.options[0].text, "Yes")
        self.assertTrue(question.options[0].isCorrect)

    def test_mcq_lesson_without_questions_gets_placeholder(self) -> None:
        raw = {"title": "T", "lessons": [{"title": "Quiz", "type": "mcq", "content": {"questions": "bad"}}]}
        result = normalize_tutorial(raw)
        lesson = result.tutorial.lessons[0]

        self.assertEqual(lesson.type, "mcq")
        self.assertEqual(len(lesson.content.questions), 1)
        self.assertTrue(lesson.content.questions[0].coerced)
        self.assertIn("missing_questions", _codes(result))

    def test_flat_single_question_content_is_wrapped(self) -> None:
        raw = {
            "title": "T",
            "lessons": [
                {
                    "title": "Quiz",
                    "type": "mcq",
                    "content": {"question": "Q?", "options": ["A", "B", "C", "D"], "explanation": "E"},
                }
            ],
        }
        result = normalize_tutorial(raw)

        self.assertEqual(result.tutorial.lessons[0].content.questions[0].question, "Q?")
        self.assertIn("flat_content_wrapped", _codes(result))


class BlankAndBlockNormalizationTests(unittest.TestCase):
    def _blanks(self, blanks: list):
        result = normalize_tutorial({"title": "T", "lessons": [_blank_lesson(blanks)]})
        return result, result.tutorial.lessons[0]

    def test_empty_dropdown_is_demoted_to_text(self) -> None:
        result, lesson = self._blanks([{"id": "b1", "type": "dropdown", "correctAnswer": "1", "options": []}])
        blank = lesson.content.questions[0].blanks[0]

        self.assertEqual(blank.type, "text")
        self.assertIsNone(blank.options)
        self.assertIn("empty_dropdown_demoted", _codes(result))

    def test_dropdown_options_are_deduplicated_and_include_answer(self) -> None:
        _, lesson = self._blanks(
            [{"id": "b1", "type": "dropdown", "correctAnswer": "1", "options": ["2", "2", " ", "3"]}]
        )
        blank = lesson.content.questions[0].blanks[0]

        self.assertEqual(blank.type, "dropdown")
        self.assertEqual(blank.options, ["2", "3", "1"])

    def test_code_blank_type_becomes_text_without_options(self) -> None:
        result, lesson = self._blanks([{"id": "b1", "type": "code", "correctAnswer": "1", "options": ["1", "2"]}])
        blank = lesson.content.questions[0].blanks[0]

        self.assertEqual(blank.type, "text")
        self.assertIsNone(blank.options)
        self.assertIn("blank_type_coerced", _codes(result))

    def test_exercise_without_usable_blanks_is_demoted_to_concept(self) -> None:
        result, lesson = self._blanks([{"id": "b1", "type": "dropdown"}])

        self.assertEqual(lesson.type, "concept")
        self.assertIn("empty_exercise_demoted", _codes(result))

    def test_correct_order_is_repaired(self) -> None:
        raw = {
            "title": "T",
            "lessons": [
                {
                    "title": "Arrange",
                    "type": "codeblock_rearranging",
                    "content": {
                        "questions": [
                            {
                                "id": "q1",
                                "scenario": "Print numbers",
                                "codeBlocks": [
                                    {"id": "b1", "content": "for i in range(3):"},
                                    {"id": "b2", "content": "    print(i)"},
                                    {"id": "b1", "content": "print('done')"},
                                ],
                                "correctOrder": ["b2", "ghost", "b2", "b1"],
                            }
                        ]
                    },
                }
            ],
        }
        result = normalize_tutorial(raw)
        question = result.tutorial.lessons[0].content.questions[0]

        self.assertEqual([block.id for block in question.codeBlocks], ["b1", "b2", "b1-2"])
        self.assertEqual(question.correctOrder, ["b2", "b1", "b1-2"])
        self.assertIn("correct_order_repaired", _codes(result))


class DiagramNormalizationTests(unittest.TestCase):
    def _concept_with_diagram(self, diagram) -> dict:
        return {
            "title": "T",
            "lessons": [{"title": "Flow", "type": "concept", "content": {"explanation": "E", "diagram_data": diagram}}],
        }

    def test_unknown_diagram_type_is_dropped(self) -> None:
        result = normalize_tutorial(self._concept_with_diagram({"type": "sequence", "nodes": []}))

        self.assertIsNone(result.tutorial.lessons[0].content.diagram_data)
        self.assertIn("diagram_dropped", _codes(result))

    def test_dangling_edges_are_dropped_and_decision_branches_recorded(self) -> None:
        diagram = {
            "type": "flowchart",
            "direction": "sideways",
            "nodes": [
                {"id": "start", "label": "Start", "type": "start"},
                {"id": "check", "label": "x > 0?", "type": "decision"},
                {"id": "end", "label": "End", "type": "end"},
            ],
            "connections": [
                {"from": "start", "to": "check"},
                {"from": "check", "to": "end", "condition": "true"},
                {"from": "check", "to": "missing", "condition": "false"},
            ],
        }
        result = normalize_tutorial(self._concept_with_diagram(diagram))
        flowchart = result.tutorial.lessons[0].content.diagram_data

        self.assertEqual(flowchart.direction, "TD")
        self.assertEqual(len(flowchart.connections), 2)
        self.assertIn("dangling_edge", _codes(result))
        self.assertIn("decision_branch_count", _codes(result))

    def test_class_diagram_survives(self) -> None:
        diagram = {
            "type": "class",
            "classes": [
                {"id": "animal", "label": "Animal", "type": "abstract", "methods": ["speak()"]},
                {"id": "dog", "label": "Dog"},
            ],
            "relationships": [{"from": "dog", "to": "animal", "type": "inheritance"}],
        }
        tutorial = normalize_tutorial(self._concept_with_diagram(diagram)).tutorial
        class_diagram = tutorial.lessons[0].content.diagram_data

        self.assertEqual(class_diagram.type, "class")
        self.assertEqual(class_diagram.classes[0].methods[0].returnType, "void")
        self.assertEqual(class_diagram.relationships[0].from_, "dog")


class NormalizerFixedPointTests(unittest.TestCase):
    def test_normalizing_output_again_changes_nothing(self) -> None:
        raw = {
            "title": "Go Loops",
            "difficulty": "2",
            "keyTopics": ["loops", "Loops"],
            "lessons": [
                {
                    "title": "1. Basics",
                    "type": "concept",
                    "content": {
                        "explanation": "Loops repeat work.",
                        "codeExamples": [
                            {
                                "code": "for i := 0; i < 3; i++ {}",
                                "diagram_data": {
                                    "type": "flowchart",
                                    "nodes": [{"id": "s", "label": "Start", "type": "start"}, {"label": "Loop"}],
                                    "connections": [{"from": "s", "to": "n2"}, {"from": "s", "to": "zz"}],
                                },
                            },
                            {"title": "no code"},
                        ],
                    },
                },
                _mcq_lesson(["A", {"text": "B", "isCorrect": True}, {"text": "C", "isCorrect": True}]),
                _blank_lesson(
                    [
                        {"id": "b1", "type": "dropdown", "correctAnswer": "1", "options": ["2", "2"]},
                        {"type": "text", "correctAnswer": "x", "options": ["x"], "hint": "var"},
                    ]
                ),
                {
                    "title": "Arrange",
                    "type": "codeblock_rearranging",
                    "content": {"targetCode": "a := 1\nb := 2\nfmt.Println(a + b)"},
                },
                {"title": "Mystery", "type": "poll"},
            ],
            "tags": ["go", "GO"],
            "reference": {
                "examples": [{"code": "for {}", "output": ""}],
                "common_mistakes": ["off by one"],
                "syntax_guide": {"basic_syntax": "for init; cond; post {}", "parameters": [{"name": "init"}]},
            },
        }

        first = normalize_tutorial(raw, topic="Loops", language="Go", difficulty=1, lesson_count=5)
        first_payload = first.tutorial.to_payload()
        second = normalize_tutorial(first_payload, topic="Loops", language="Go", difficulty=1, lesson_count=5)

        self.assertEqual(second.tutorial.to_payload(), first_payload)

    def test_fallback_tutorial_is_minimal_and_valid(self) -> None:
        tutorial = build_fallback_tutorial("Recursion", "Python", 2)

        self.assertEqual(tutorial.title, "Recursion")
        self.assertEqual(tutorial.difficulty, 2)
        self.assertEqual(len(tutorial.lessons), 1)
        self.assertEqual(tutorial.lessons[0].type, "concept")
        self.assertIn("Recursion", tutorial.keyTopics)
        self.assertEqual(normalize_tutorial(tutorial.to_payload()).tutorial, tutorial)


if __name__ == "__main__":
    unittest.main()
