import unittest

import numpy as np

from film_details import render_claims_details, render_justification_details


class TestClaimsDetails(unittest.TestCase):

    def setUp(self):
        """Set up a timeline film record"""
        self.film = {
            "title": "Minority <Report>",
            "year": 2002.0,
            "score": 3.5,
            "gross": 358372926.0,
            "anticipatory": True,
            "claims": [{"claim_text": "Gesture interfaces"}, {"claim_text": "Personalised ads"}],
            "past_outcomes": [0, "NA"],
            "present_outcomes": [1],
        }

    def test_no_selection(self):
        self.assertIsNone(render_claims_details(None))

    def test_header_and_outcomes(self):
        """Test title escaping, meta line and per-claim outcomes"""
        html = render_claims_details(self.film)
        self.assertIn("<h3>Minority &lt;Report&gt; (2002)</h3>", html)
        self.assertIn("Prediction score : <strong>3.50</strong>", html)
        self.assertIn("<strong>358,372,926 $</strong>", html)
        self.assertIn("Anticipatory film", html)
        self.assertIn("Claim 1", html)
        self.assertIn('"Gesture interfaces"', html)
        self.assertIn("At release : <strong>False (0)</strong>", html)
        self.assertIn("Now : <strong>True (1)</strong>", html)
        # missing outcome positions render as n/a
        self.assertEqual(html.count("<strong>n/a</strong>"), 2)

    def test_more_claims_summary(self):
        self.film["claims"] = [{"claim_text": f"Claim text {i}"} for i in range(8)]
        html = render_claims_details(self.film, max_claims=5)
        self.assertIn("Claim 5", html)
        self.assertNotIn("Claim 6", html)
        self.assertIn("(+ 3 more claims in the dataset)", html)

    def test_empty_claims_and_unknowns(self):
        film = {"title": "Plain", "year": float("nan"), "score": float("nan"),
                "gross": float("nan"), "anticipatory": None, "claims": []}
        html = render_claims_details(film)
        self.assertIn("<h3>Plain</h3>", html)
        self.assertIn("No structured claims available.", html)
        self.assertIn("<strong>NA</strong>", html)
        self.assertIn("<strong>Unknown</strong>", html)
        self.assertNotIn("film-anticip", html)

    def test_claim_without_text(self):
        self.film["claims"] = [{"year": 2020}]
        self.film["anticipatory"] = np.bool_(False)
        html = render_claims_details(self.film)
        self.assertIn("(no text)", html)
        self.assertIn("Non-anticipatory film", html)


class TestJustificationDetails(unittest.TestCase):

    def test_no_selection(self):
        self.assertIsNone(render_justification_details(None))

    def test_money_and_justification(self):
        film = {"title": "Her", "year": 2013, "score": 4, "boxoffice": 52000000,
                "budget": "", "score_evaluation": "  Voice assistants & <AI>  ",
                "anticipatory": True}
        html = render_justification_details(film)
        self.assertIn("<h3>Her (2013)</h3>", html)
        self.assertIn("Prediction score: <strong>4.00</strong>", html)
        self.assertIn("<strong>52,000,000 $</strong>", html)
        self.assertIn("Budget (2020$): <strong>Unknown</strong>", html)
        self.assertIn("Voice assistants &amp; &lt;AI&gt;", html)

    def test_missing_justification(self):
        html = render_justification_details({"title": "Silent", "score_evaluation": ""})
        self.assertIn("No score justification available for this film.", html)


if __name__ == '__main__':
    unittest.main()
