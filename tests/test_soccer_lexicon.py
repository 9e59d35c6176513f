from __future__ import annotations

import unittest

from soccer_lexicon import (
    collapse_elongation,
    keywords_for,
    normalize_language,
    phrase_table,
    translate_with_dictionary,
)


class DictionaryTranslationTests(unittest.TestCase):
    def test_spanish_english_round_trip(self) -> None:
        english = translate_with_dictionary("Golazo de tiro libre", "es", "en")
        self.assertEqual(english, "Amazing goal de free kick")
        self.assertEqual(translate_with_dictionary(english, "en", "es"), "Golazo de tiro libre")

    def test_longest_phrase_wins(self) -> None:
        self.assertEqual(translate_with_dictionary("tiro libre", "es", "it"), "Punizione")
        self.assertEqual(translate_with_dictionary("tiro", "es", "it"), "Tiro")

    def test_unknown_words_pass_through_lowercased(self) -> None:
        self.assertEqual(translate_with_dictionary("MESSI marca GOL", "es", "en"), "Messi marca goal")

    def test_play_line_and_midfield_terms(self) -> None:
        self.assertEqual(translate_with_dictionary("gran jugada del medio", "es", "en"), "Gran play del midfielder")
        self.assertEqual(translate_with_dictionary("sobre la línea", "es", "en"), "Sobre la line")
        self.assertEqual(translate_with_dictionary("play on the line", "en", "es"), "Jugada on the línea")
        self.assertEqual(translate_with_dictionary("medio tiempo", "es", "en"), "Half time")

    def test_only_whole_words_are_replaced(self) -> None:
        self.assertEqual(translate_with_dictionary("goles", "es", "en"), "Goles")

    def test_accents_and_case_are_matched(self) -> None:
        self.assertEqual(translate_with_dictionary("ÁRBITRO", "es", "de"), "Schiedsrichter")

    def test_unknown_pair_passes_text_through(self) -> None:
        self.assertEqual(translate_with_dictionary("gol do benfica", "es", "pt"), "Gol do benfica")
        self.assertEqual(dict(phrase_table("es", "pt")), {})

    def test_missing_language_or_text_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            translate_with_dictionary("gol", "", "en")
        with self.assertRaises(ValueError):
            translate_with_dictionary("   ", "es", "en")


class VocabularyTests(unittest.TestCase):
    def test_elongation_collapse(self) -> None:
        self.assertEqual(collapse_elongation("goooal"), "goal")
        self.assertEqual(collapse_elongation("gooool"), "gol")

    def test_region_tags_are_normalized(self) -> None:
        self.assertEqual(normalize_language("es-ES"), "es")
        self.assertEqual(normalize_language("pt_BR"), "pt")
        self.assertEqual(normalize_language(None), "")

    def test_keyword_tables(self) -> None:
        self.assertIn("fuorigioco", keywords_for("it-IT"))
        self.assertIn("tarjeta roja", keywords_for("es"))
        self.assertEqual(keywords_for("pt"), frozenset())


if __name__ == "__main__":
    unittest.main()
