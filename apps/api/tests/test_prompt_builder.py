import unittest

from tutorgen.services.tutorial.prompt_builder import (
    CORE_TUTORIAL_REQUIREMENTS,
    DEFAULT_LESSON_COUNT,
    DIFFICULTY_LABELS,
    JSON_STRUCTURE_REQUIREMENTS,
    MAX_LESSON_COUNT,
    build_system_prompt,
    build_tutorial_prompt,
    default_prompt_sections,
    normalize_lesson_count,
)


class TutorialPromptTests(unittest.TestCase):
    def test_prompt_contains_topic_and_language_verbatim(self) -> None:
        prompt = build_tutorial_prompt("Python Decorators & Closures", "Python", 2, 4)

        self.assertIn("Python Decorators & Closures", prompt)
        self.assertIn("Programming Language: Python", prompt)
        self.assertIn("Number of Lessons: 4", prompt)
        self.assertIn(DIFFICULTY_LABELS[2], prompt)

    def test_sections_are_rendered_in_order(self) -> None:
        prompt = build_tutorial_prompt("Loops", "Go", 1, 3)
        sections = default_prompt_sections()

        positions = [prompt.index(sections[key]) for key in ("core", "progression", "quality", "schema")]
        self.assertEqual(positions, sorted(positions))
        self.assertLess(positions[-1], prompt.index("TUTORIAL SPECIFICATION:"))

    def test_critical_constraints_are_repeated_after_parameters(self) -> None:
        prompt = build_tutorial_prompt("Loops", "Go", 1, 3)
        tail = prompt[prompt.index("TUTORIAL SPECIFICATION:"):]

        self.assertIn('"learningObjectives" and "keyTopics"', tail)
        self.assertIn("exactly 4 options with exactly 1", tail)

    def test_degenerate_inputs_still_produce_prompt(self) -> None:
        prompt = build_tutorial_prompt("", "", None, None, focus_areas=None, exclusions=None, overrides=None)

        self.assertTrue(prompt.strip())
        self.assertIn(f"Number of Lessons: {DEFAULT_LESSON_COUNT}", prompt)
        self.assertIn(DIFFICULTY_LABELS[1], prompt)

    def test_invalid_difficulty_falls_back_to_beginner(self) -> None:
        prompt = build_tutorial_prompt("Loops", "Go", 7, 3)

        self.assertIn("Difficulty Level: 1 - ", prompt)

    def test_lesson_count_is_normalized(self) -> None:
        self.assertEqual(normalize_lesson_count(None), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count("abc"), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(0), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(True), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count("7"), 7)
        self.assertEqual(normalize_lesson_count(99), MAX_LESSON_COUNT)

    def test_non_finite_and_huge_lesson_counts(self) -> None:
        self.assertEqual(normalize_lesson_count(float("inf")), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(float("-inf")), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(float("nan")), DEFAULT_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(10**100), MAX_LESSON_COUNT)
        self.assertEqual(normalize_lesson_count(1e300), MAX_LESSON_COUNT)

        prompt = build_tutorial_prompt("Loops", "Go", float("nan"), float("inf"))

        self.assertIn(f"Number of Lessons: {DEFAULT_LESSON_COUNT}", prompt)
        self.assertIn("Difficulty Level: 1 - ", prompt)

    def test_focus_areas_and_exclusions_blocks(self) -> None:
        plain = build_tutorial_prompt("Loops", "Go", 1, 3)
        self.assertNotIn("SPECIAL FOCUS AREAS:", plain)
        self.assertNotIn("EXCLUSIONS - DO NOT INCLUDE:", plain)

        prompt = build_tutorial_prompt("Loops", "Go", 1, 3, focus_areas="range loops", exclusions="goto")
        self.assertIn("SPECIAL FOCUS AREAS:\nrange loops", prompt)
        self.assertIn("EXCLUSIONS - DO NOT INCLUDE:\ngoto", prompt)

    def test_overrides_replace_only_non_blank_sections(self) -> None:
        prompt = build_tutorial_prompt(
            "Loops",
            "Go",
            1,
            3,
            overrides={"core": "CUSTOM CORE RULES", "schema": "   ", "unknown": "ignored"},
        )

        self.assertIn("CUSTOM CORE RULES", prompt)
        self.assertNotIn(CORE_TUTORIAL_REQUIREMENTS, prompt)
        self.assertIn(JSON_STRUCTURE_REQUIREMENTS, prompt)
        self.assertNotIn("ignored", prompt)

    def test_schema_section_renders_placeholder_braces(self) -> None:
        self.assertIn("{{blank1}}", JSON_STRUCTURE_REQUIREMENTS)
        self.assertIn('"type": "flowchart"', JSON_STRUCTURE_REQUIREMENTS)

    def test_system_prompt_names_language(self) -> None:
        prompt = build_system_prompt("Rust")

        self.assertIn("MUST BE IN RUST", prompt)
        self.assertIn("exactly 4 options", prompt)
        self.assertIn("{{blank_id}}", prompt)


if __name__ == "__main__":
    unittest.main()
