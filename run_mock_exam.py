"""
Run one exam attempt end to end: start (or resume), answer some right, some wrong, skip the rest, submit.
Verifies attempt creation, answer persistence and scoring against the configured store.

Run: python run_mock_exam.py [--backend memory] [--exam-id general-knowledge] [--correct-ratio 0.7]
"""
import argparse
import logging
import random
import sys
import uuid

from exam_session import config
from exam_session.errors import ExamSessionError


def main():
    parser = argparse.ArgumentParser(description="Simulate an exam attempt to verify session handling and scoring.")
    parser.add_argument("--backend", choices=["supabase", "memory"], default=config.STORE_BACKEND)
    parser.add_argument("--exam-id", default="general-knowledge", help="Exam to attempt")
    parser.add_argument("--user-id", default=None, help="User id (default: a fresh random id)")
    parser.add_argument("--correct-ratio", type=float, default=0.7, help="Fraction to answer correctly (default 0.7)")
    parser.add_argument("--wrong-ratio", type=float, default=0.2, help="Fraction to answer wrongly (default 0.2)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the simulated answers")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    from db import get_engine_uncached

    rnd = random.Random(args.seed)
    user_id = args.user_id or str(uuid.uuid4())
    engine = get_engine_uncached(args.backend)
    try:
        view = engine.start(args.exam_id, user_id)
        print(f"Attempt {view.session_id} ({'resumed' if view.resumed else 'new'}): "
              f"{len(view.questions)} questions, {view.remaining_seconds}s left")

        correct_ratio = max(0.0, min(1.0, args.correct_ratio))
        wrong_ratio = max(0.0, min(1.0 - correct_ratio, args.wrong_ratio))
        questions = engine.sessions.get_runtime(view.session_id).attempt.questions
        expected_correct = 0
        pending = []
        for i, q in enumerate(questions):
            r = rnd.random()
            if r < correct_ratio:
                chosen, outcome = q.correct_option, "correct"
                expected_correct += 1
            elif r < correct_ratio + wrong_ratio:
                chosen = rnd.choice([j for j in range(len(q.options)) if j != q.correct_option])
                outcome = "wrong"
            else:
                chosen, outcome = None, "skip"
            if chosen is not None:
                pending.append(engine.answer(view.session_id, q.id, chosen))
            print(f"  Q{i + 1:2d}  correct={q.correct_option}  chosen={'skip' if chosen is None else chosen}  {outcome}")

        for future in pending:
            future.result()

        outcome = engine.submit(view.session_id)
        result = outcome.result
        print()
        print("=" * 60)
        print(outcome.message)
        print("=" * 60)
        print(f"  Score: {result.score}%  ({result.correct_answers}/{result.total_questions})")
        print(f"  Passed: {result.passed}")
        print(f"  Minutes used: {result.time_taken_minutes}")
        if result.correct_answers == expected_correct:
            print("Correct count matches the simulated answers.")
        else:
            print(f"WARNING: expected {expected_correct} correct, result says {result.correct_answers}.")
    except ExamSessionError as e:
        print(f"✗ {e}{' (retryable)' if e.retryable else ''}")
        sys.exit(1)
    finally:
        engine.shutdown()


if __name__ == "__main__":
    main()
