from sifu.core.domain.normalizer import normalize_question, question_key


class TestNormalizeQuestion:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_question("What is Qi?") == "what is qi"

    def test_collapses_whitespace_runs(self):
        assert normalize_question("  What   is,\tQI!!\n") == "what is qi"

    def test_keeps_other_punctuation(self):
        assert normalize_question("Wu-wei; what's that?") == "wu-wei; what's that"

    def test_empty_text(self):
        assert normalize_question("   ?! ") == ""


class TestQuestionKey:
    def test_variants_share_a_key(self):
        assert question_key("What is Qi?") == question_key("what   is qi")
        assert question_key("WHAT IS QI!") == question_key("What, is Qi.")

    def test_different_questions_differ(self):
        assert question_key("What is Qi?") != question_key("What is Jing?")

    def test_is_sha256_hex(self):
        key = question_key("What is Qi?")
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)
