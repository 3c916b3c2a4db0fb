import unittest

import chess

from helpers import BACK_RANK_FEN, EN_PASSANT_FEN, FOOLS_MATE_FEN, PROMOTION_FEN, START_FEN
from llmchess_play.referee import Referee, promotion_letter


class RefereeTests(unittest.TestCase):
    def test_initial_state(self):
        ref = Referee()
        state = ref.current_state()
        self.assertEqual(state.fen, START_FEN)
        self.assertEqual(state.turn, "w")
        self.assertFalse(state.is_game_over)
        self.assertEqual(state.history, ())
        self.assertEqual(sorted(state.valid_moves["g1"]), ["f3", "h3"])
        self.assertEqual(state.board[0][4], ("k", "b"))
        self.assertEqual(state.board[7][4], ("k", "w"))
        self.assertIsNone(state.board[4][4])

    def test_apply_move_records_history_and_san(self):
        ref = Referee()
        res = ref.apply_move("g1", "f3")
        self.assertTrue(res.success)
        self.assertEqual(res.san, "Nf3")
        self.assertEqual(res.state.turn, "b")
        entry = res.state.history[-1]
        self.assertEqual((entry.from_square, entry.to_square, entry.piece, entry.color), ("g1", "f3", "n", "w"))
        self.assertIn("1. Nf3", res.state.pgn)

    def test_illegal_move_is_rejected_without_changes(self):
        ref = Referee()
        res = ref.apply_move("e2", "e5")
        self.assertFalse(res.success)
        self.assertEqual(res.error, "Invalid move: e2-e5")
        self.assertEqual(ref.fen(), START_FEN)

    def test_promotion_defaults_to_queen(self):
        ref = Referee(PROMOTION_FEN)
        res = ref.apply_move("e7", "e8")
        self.assertTrue(res.success)
        self.assertEqual(res.san, "e8=Q")
        self.assertEqual(res.state.history[-1].promotion, "q")

    def test_promotion_piece_name_is_accepted(self):
        ref = Referee(PROMOTION_FEN)
        res = ref.apply_move("e7", "e8", "knight")
        self.assertTrue(res.success)
        self.assertEqual(res.san, "e8=N")

    def test_invalid_promotion_piece(self):
        ref = Referee(PROMOTION_FEN)
        res = ref.apply_move("e7", "e8", "k")
        self.assertFalse(res.success)
        self.assertIn("Invalid promotion piece", res.error)

    def test_promotion_ignored_for_ordinary_move(self):
        ref = Referee()
        res = ref.apply_move("e2", "e4", "q")
        self.assertTrue(res.success)
        self.assertEqual(res.san, "e4")
        self.assertIsNone(res.state.history[-1].promotion)

    def test_en_passant_capture(self):
        ref = Referee(EN_PASSANT_FEN)
        res = ref.apply_move("e5", "d6")
        self.assertTrue(res.success)
        self.assertEqual(res.san, "exd6")
        self.assertIsNone(ref.piece_at("d5"))

    def test_undo_restores_position(self):
        ref = Referee()
        ref.apply_move("e2", "e4")
        res = ref.undo()
        self.assertTrue(res.success)
        self.assertEqual(res.san, "e4")
        self.assertEqual(ref.fen(), START_FEN)
        self.assertEqual(res.state.history, ())

    def test_undo_with_empty_history(self):
        res = Referee().undo()
        self.assertFalse(res.success)
        self.assertEqual(res.error, "No move to undo")

    def test_checkmate_flags(self):
        ref = Referee(BACK_RANK_FEN)
        res = ref.apply_move("a1", "a8")
        self.assertEqual(res.san, "Ra8#")
        self.assertTrue(res.state.is_checkmate)
        self.assertTrue(res.state.is_check)
        self.assertTrue(res.state.is_game_over)
        self.assertEqual(ref.status(), "1-0")

    def test_fools_mate_is_game_over(self):
        ref = Referee(FOOLS_MATE_FEN)
        state = ref.current_state()
        self.assertTrue(state.is_checkmate)
        self.assertEqual(state.valid_moves, {})
        self.assertEqual(ref.status(), "0-1")

    def test_stalemate_is_draw(self):
        ref = Referee("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
        state = ref.current_state()
        self.assertTrue(state.is_draw)
        self.assertFalse(state.is_checkmate)
        self.assertTrue(state.is_game_over)
        self.assertEqual(ref.status(), "1/2-1/2")

    def test_load_fen(self):
        ref = Referee()
        ref.apply_move("e2", "e4")
        res = ref.load_fen(EN_PASSANT_FEN)
        self.assertTrue(res.success)
        self.assertEqual(res.state.fen, EN_PASSANT_FEN)
        self.assertEqual(res.state.history, ())

    def test_load_fen_rejects_garbage(self):
        ref = Referee()
        res = ref.load_fen("not a fen")
        self.assertFalse(res.success)
        self.assertEqual(res.error, "Invalid FEN string")
        self.assertEqual(ref.fen(), START_FEN)

    def test_load_pgn_replays_history(self):
        ref = Referee()
        res = ref.load_pgn("1. e4 e5 2. Nf3 Nc6 *")
        self.assertTrue(res.success)
        self.assertEqual([h.san for h in res.state.history], ["e4", "e5", "Nf3", "Nc6"])
        self.assertEqual(ref.last_san(), "Nc6")
        self.assertEqual(ref.turn, "w")

    def test_load_pgn_rejects_illegal_moves(self):
        res = Referee().load_pgn("1. e4 e5 2. Ke3 Ke6 3. Qxf7 *")
        self.assertFalse(res.success)
        self.assertEqual(res.error, "Invalid PGN string")

    def test_reset(self):
        ref = Referee(BACK_RANK_FEN)
        state = ref.reset()
        self.assertEqual(state.fen, START_FEN)

    def test_pgn_headers(self):
        ref = Referee()
        ref.set_headers(white="Human", black="gpt-test", date="2024.01.01")
        ref.apply_move("d2", "d4")
        pgn = ref.pgn()
        self.assertIn('[White "Human"]', pgn)
        self.assertIn('[Black "gpt-test"]', pgn)
        self.assertIn("1. d4", pgn)

    def test_state_to_dict_uses_api_keys(self):
        d = Referee().current_state().to_dict()
        for key in ("fen", "pgn", "turn", "isCheck", "isCheckmate", "isDraw", "isGameOver", "history", "validMoves", "board"):
            self.assertIn(key, d)
        self.assertEqual(d["board"][0][0], {"type": "r", "color": "b"})

    def test_is_promotion(self):
        ref = Referee(PROMOTION_FEN)
        self.assertTrue(ref.is_promotion("e7", "e8"))
        self.assertFalse(ref.is_promotion("e1", "e2"))

    def test_promotion_letter(self):
        self.assertEqual(promotion_letter("Q"), "q")
        self.assertEqual(promotion_letter("rook"), "r")
        self.assertIsNone(promotion_letter("k"))
        self.assertIsNone(promotion_letter(None))
        self.assertEqual(chess.Piece.from_symbol(promotion_letter("N")).piece_type, chess.KNIGHT)


if __name__ == "__main__":
    unittest.main()
