import unittest
from unittest import mock

from helpers import BISHOP_CAPTURE_FEN, CASTLING_FEN, PROMOTION_FEN, START_FEN, TWO_KNIGHTS_FEN, FakeLLM
from llmchess_play.matcher import MoveMatch, ResolvedMove
from llmchess_play.referee import Referee
from llmchess_play.resolver import MoveResolver, find_move, parse_move


class FindMoveTests(unittest.TestCase):
    def test_matcher_runs_before_fallbacks(self):
        ref = Referee()
        self.assertEqual(find_move("Nf3", ref).strategy, "exact")
        self.assertEqual(find_move("g1f3", ref).strategy, "coordinate")
        self.assertEqual(ref.fen(), START_FEN)

    def test_no_match(self):
        self.assertIsNone(find_move("I", Referee()))

    def test_wrong_origin_hint_is_not_guessed(self):
        self.assertIsNone(find_move("Nhf3", Referee()))


class MoveResolverTests(unittest.TestCase):
    def setUp(self):
        self.resolver = MoveResolver(max_regenerations=1)

    def test_prose_reply_is_applied(self):
        ref = Referee()
        res = self.resolver.resolve("I'll play Nf3!", ref)
        self.assertTrue(res.ok)
        self.assertEqual(res.notation, "Nf3")
        self.assertEqual(res.san, "Nf3")
        self.assertEqual(res.strategy, "exact")
        self.assertEqual(res.attempts, 0)
        self.assertEqual(res.state.turn, "b")
        self.assertEqual(ref.last_san(), "Nf3")

    def test_castling_with_zeroes_is_applied(self):
        ref = Referee(CASTLING_FEN)
        res = self.resolver.resolve("0-0", ref)
        self.assertTrue(res.ok)
        self.assertEqual(res.san, "O-O")
        self.assertEqual(ref.piece_at("g1"), ("k", "w"))

    def test_first_move_in_reply_is_played(self):
        ref = Referee(CASTLING_FEN)
        res = MoveResolver(max_regenerations=0).resolve("Ra2 now, O-O later", ref)
        self.assertTrue(res.ok)
        self.assertEqual(res.san, "Ra2")
        self.assertEqual(ref.piece_at("e1"), ("k", "w"))

    def test_promotion_piece_reaches_the_board(self):
        ref = Referee(PROMOTION_FEN)
        res = self.resolver.resolve("e8=N", ref)
        self.assertTrue(res.ok)
        self.assertEqual(ref.piece_at("e8"), ("n", "w"))

    def test_bare_promotion_square_becomes_queen(self):
        ref = Referee(PROMOTION_FEN)
        res = self.resolver.resolve("e8", ref)
        self.assertTrue(res.ok)
        self.assertEqual(res.san, "e8=Q")

    def test_ambiguous_move_is_applied_and_logged(self):
        ref = Referee(TWO_KNIGHTS_FEN)
        with self.assertLogs("resolver", level="WARNING") as logs:
            res = self.resolver.resolve("Nd2", ref)
        self.assertTrue(res.ok)
        self.assertTrue(res.ambiguous)
        self.assertIn("Ambiguous notation", logs.output[0])
        self.assertEqual(len(ref.board.move_stack), 1)

    def test_malformed_without_llm(self):
        ref = Referee()
        res = self.resolver.resolve("I think you should play the knight move", ref)
        self.assertFalse(res.ok)
        self.assertEqual(res.reason, "malformed_notation")
        self.assertEqual(res.error, 'Could not parse move "I"')
        self.assertEqual(res.tried, ["I"])
        self.assertEqual(ref.fen(), START_FEN)

    def test_regeneration_recovers(self):
        ref = Referee()
        llm = FakeLLM(["e4"])
        res = self.resolver.resolve("I think you should play the knight move", ref, llm, "expert")
        self.assertTrue(res.ok)
        self.assertEqual(res.san, "e4")
        self.assertEqual(res.attempts, 1)
        self.assertEqual(res.tried, ["I", "e4"])
        self.assertEqual(res.explanation, "scripted reason")
        self.assertEqual(llm.calls, [{"fen": START_FEN, "difficulty": "expert", "want_explanation": True}])

    def test_regeneration_is_bounded(self):
        ref = Referee()
        llm = FakeLLM(["garbage", "more garbage"])
        res = self.resolver.resolve("nonsense", ref, llm)
        self.assertFalse(res.ok)
        self.assertEqual(res.reason, "malformed_notation")
        self.assertEqual(res.attempts, 1)
        self.assertEqual(len(llm.calls), 1)
        self.assertEqual(res.tried, ["nonsense", "garbage"])
        self.assertEqual(ref.fen(), START_FEN)

    def test_zero_regenerations_never_calls_llm(self):
        llm = FakeLLM(["e4"])
        res = MoveResolver(max_regenerations=0).resolve("nonsense", Referee(), llm)
        self.assertEqual(res.reason, "malformed_notation")
        self.assertEqual(llm.calls, [])

    def test_collaborator_failure_during_regeneration(self):
        ref = Referee()
        res = self.resolver.resolve("nonsense", ref, FakeLLM([]))
        self.assertFalse(res.ok)
        self.assertEqual(res.reason, "collaborator_unavailable")
        self.assertIn("no scripted move left", res.error)
        self.assertEqual(ref.fen(), START_FEN)

    def test_referee_rejection_is_illegal_move(self):
        ref = Referee()
        bogus = MoveMatch(ResolvedMove("e2", "e5"), "exact", "e5")
        llm = FakeLLM(["e4"])
        with mock.patch("llmchess_play.resolver.find_move", return_value=bogus):
            with self.assertLogs("resolver", level="ERROR"):
                res = self.resolver.resolve("e5", ref, llm)
        self.assertFalse(res.ok)
        self.assertEqual(res.reason, "illegal_move")
        self.assertEqual(res.move, ResolvedMove("e2", "e5"))
        self.assertEqual(llm.calls, [])
        self.assertEqual(ref.fen(), START_FEN)

    def test_to_dict(self):
        res = self.resolver.resolve("Nf3", Referee())
        d = res.to_dict()
        self.assertEqual(d["move"], {"from": "g1", "to": "f3"})
        self.assertEqual(d["san"], "Nf3")
        self.assertNotIn("reason", d)
        failed = self.resolver.resolve("nonsense", Referee()).to_dict()
        self.assertEqual(failed["reason"], "malformed_notation")
        self.assertIsNone(failed["move"])


class EndToEndTests(unittest.TestCase):
    def _resolve(self, fen, token):
        ref = Referee(fen)
        return MoveResolver(max_regenerations=1).resolve(token, ref), ref

    def test_pawn_push(self):
        res, _ = self._resolve(START_FEN, "e4")
        self.assertEqual(res.move, ResolvedMove("e2", "e4"))

    def test_knight_development(self):
        res, _ = self._resolve(START_FEN, "Nf3")
        self.assertEqual(res.move, ResolvedMove("g1", "f3"))

    def test_queen_promotion(self):
        res, _ = self._resolve(PROMOTION_FEN, "e8=Q")
        self.assertEqual(res.move, ResolvedMove("e7", "e8", "q"))

    def test_castling_from_start_fails_cleanly(self):
        res, ref = self._resolve(START_FEN, "O-O")
        self.assertFalse(res.ok)
        self.assertEqual(res.reason, "malformed_notation")
        self.assertEqual(ref.fen(), START_FEN)

    def test_bishop_capture(self):
        res, _ = self._resolve(BISHOP_CAPTURE_FEN, "Bxf7")
        self.assertEqual(res.move, ResolvedMove("c4", "f7"))
        res, _ = self._resolve(BISHOP_CAPTURE_FEN, "Bxf7+")
        self.assertEqual(res.move, ResolvedMove("c4", "f7"))
        self.assertEqual(res.strategy, "capture_destination")


class ParseMoveTests(unittest.TestCase):
    def test_parses_san(self):
        self.assertEqual(parse_move(START_FEN, "Nf3"), {"from": "g1", "to": "f3", "san": "Nf3", "ambiguous": False})

    def test_parses_coordinate_promotion(self):
        d = parse_move(PROMOTION_FEN, "e7e8=R")
        self.assertEqual((d["from"], d["to"], d["promotion"]), ("e7", "e8", "r"))

    def test_unparseable_lists_available_moves(self):
        d = parse_move(START_FEN, "castle long")
        self.assertEqual(d["error"], "Could not parse move: castle")
        self.assertEqual(len(d["availableMoves"]), 20)
        self.assertIn("e4", d["availableMoves"])

    def test_invalid_fen(self):
        self.assertEqual(parse_move("bogus", "e4"), {"error": "Invalid FEN string", "availableMoves": []})


if __name__ == "__main__":
    unittest.main()
