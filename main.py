"""KRA Assessment Engine - Command Line Interface"""

import argparse
import getpass
import sys
from pathlib import Path
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s: %(message)s'
)


def cmd_stats(args):
    """Show question bank statistics"""
    from storage.json_storage import QuestionStorage
    from config.settings import ASSESSMENT_CONFIG, SECTION_CONFIG

    storage = QuestionStorage()
    stats = storage.get_stats()

    print("\n📊 QUESTION BANK STATISTICS")
    print("="*50)
    print(f"   total: {stats['total']}")

    by_section = stats.get("by_section", {})
    print(f"\n📚 By Section:")
    for section in SECTION_CONFIG.order:
        count = by_section.get(section, 0)
        flag = "" if count >= ASSESSMENT_CONFIG.per_section_count else "  ⚠️  below draw size"
        print(f"   {SECTION_CONFIG.display_name(section)}: {count}{flag}")

    if stats.get("by_correct_option"):
        print(f"\n🔤 Correct option spread:")
        for label, count in stats["by_correct_option"].items():
            print(f"   {label}: {count}")


def cmd_validate(args):
    """Validate the stored question bank"""
    from storage.json_storage import QuestionStorage
    from core.question_cleaner import QuestionCleaner

    storage = QuestionStorage()
    questions = storage.load_questions()
    cleaner = QuestionCleaner()
    cleaner.clean_questions(questions)

    print(f"\n🧹 Validation of {len(questions)} questions:")
    for key, value in cleaner.get_stats().items():
        print(f"   {key}: {value}")

    for error in cleaner.stats.errors[:args.limit]:
        print(f"   ❌ {error}")

    if cleaner.stats.errors or cleaner.stats.duplicates_removed:
        sys.exit(1)


def cmd_import(args):
    """Import questions from a JSON or CSV file"""
    from storage.json_storage import QuestionStorage, read_question_rows
    from core.question_cleaner import QuestionCleaner

    source = Path(args.file)
    if not source.exists():
        print(f"❌ File not found: {source}")
        return

    rows = read_question_rows(source)
    cleaner = QuestionCleaner()
    clean_questions = cleaner.clean_rows(rows)

    print(f"\n📊 Cleaning Statistics:")
    for key, value in cleaner.get_stats().items():
        print(f"   {key}: {value}")

    storage = QuestionStorage()
    if args.replace:
        storage.save_questions(clean_questions)
        print(f"\n✅ Saved {len(clean_questions)} questions")
    else:
        added = storage.add_questions(clean_questions)
        print(f"\n✅ Added {added} new questions")

    print("\n📚 Section Distribution:")
    for section, count in cleaner.get_section_distribution(clean_questions).items():
        print(f"   {section}: {count}")


def cmd_add_taker(args):
    """Create a taker or reset their password"""
    from storage.takers import TakerDirectory

    password = args.password or getpass.getpass("Password: ")
    taker = TakerDirectory().add_taker(args.username, password, can_attempt=not args.no_access)
    print(f"✅ Taker {taker.username} ({taker.id}) can_attempt={taker.can_attempt}")


def cmd_set_access(args):
    """Enable or disable a taker's access to the assessment"""
    from storage.takers import TakerDirectory

    taker = TakerDirectory().set_access(args.username, args.access == "on")
    if taker is None:
        print(f"❌ Unknown taker: {args.username}")
        return
    print(f"✅ {taker.username}: can_attempt={taker.can_attempt}")


def cmd_takers(args):
    """List registered takers and their access"""
    from storage.takers import TakerDirectory

    takers = TakerDirectory().list_takers()
    print(f"\n👥 Takers: {len(takers)}")
    for t in takers:
        access = "✅" if t.can_attempt else "🔒"
        print(f"   {access} {t.username} ({t.id})")


def cmd_attempts(args):
    """List a taker's recorded attempts"""
    from storage.takers import TakerDirectory
    from storage.json_storage import AttemptStorage
    from engine.analysis_engine import AnalysisEngine, ProgressTracker
    from config.settings import SECTION_CONFIG

    taker = TakerDirectory().get(args.username)
    if taker is None:
        print(f"❌ Unknown taker: {args.username}")
        return

    storage = AttemptStorage()

    if args.latest:
        latest = storage.latest_attempt(taker.id)
        if latest is None:
            print(f"📭 No attempts recorded for {taker.username}")
            return
        analysis = AnalysisEngine().analyze(latest.scores)
        print(f"\n🕒 Latest attempt for {taker.username}: {latest.completed_at:%Y-%m-%d %H:%M}")
        print(f"   {analysis.total}/{analysis.max_score} ({analysis.percentage}%) Grade {analysis.grade}")
        for s in analysis.sections:
            print(f"   {s.name}: {s.score}/{s.total}")
        return

    attempts = storage.load_attempts(taker.id)
    print(f"\n📋 Attempts for {taker.username}: {len(attempts)}")

    for a in attempts:
        sections = ", ".join(
            f"{SECTION_CONFIG.display_name(s)} {score}"
            for s, score in a.scores.section_scores.items()
        )
        print(f"   {a.completed_at:%Y-%m-%d %H:%M} | total {a.total_score} | {sections}")

    tracker = ProgressTracker(attempts)
    if attempts:
        print("\n📈 Overall:")
        for key, value in tracker.get_overall_stats().items():
            print(f"   {key}: {value}")


def cmd_take(args):
    """Take the assessment in the terminal"""
    from storage.takers import TakerDirectory
    from storage.json_storage import AttemptStorage, QuestionStorage
    from engine.session_engine import AssessmentEngine, SessionPhase
    from engine.analysis_engine import AnalysisEngine
    from core.errors import MutationRejected, SessionStartError, SubmissionError

    password = getpass.getpass("Password: ")
    taker = TakerDirectory().authenticate(args.username, password)
    if taker is None:
        print("❌ Invalid credentials")
        return

    engine = AssessmentEngine(QuestionStorage().fetch_pool, AttemptStorage().persist)
    try:
        handle = engine.start_session(taker, duration_seconds=args.duration)
    except SessionStartError as e:
        print(f"❌ Cannot start assessment: {e}")
        return

    print("\nCommands: a/b/c/d answer, n next, p previous, s submit (on the last question)\n")

    while engine.phase(handle) == SessionPhase.ACTIVE:
        snap = engine.snapshot(handle)
        if snap.frozen:
            # Submission failed earlier; only a retry is possible
            command = input(f"⚠️  {snap.last_error}. Retry submit? [y/N] ").strip().lower()
            if command != "y":
                break
            command = "s"
        else:
            q = snap.question
            print(f"⏱ {snap.remaining_display}   Question {snap.index + 1} of "
                  f"{snap.total_questions} • {snap.section_name}   "
                  f"({snap.answered_count} answered)")
            print(f"\n{q.question_text}")
            for label, text in q.options.items():
                marker = "👉" if label == snap.selected_option else "  "
                print(f" {marker} {label}. {text}")
            command = input("\n> ").strip().lower()

        if command in ("a", "b", "c", "d"):
            try:
                engine.select_answer(handle, command)
            except MutationRejected as e:
                print(f"⚠️  {e}")
        elif command == "n":
            engine.go_next(handle)
        elif command == "p":
            engine.go_previous(handle)
        elif command == "s":
            try:
                engine.request_submit(handle)
            except (MutationRejected, SubmissionError) as e:
                print(f"❌ {e}")

    result = engine.result(handle)
    if result is None:
        print("❌ Assessment was not recorded.")
    else:
        analysis = AnalysisEngine().analyze(result, engine.breakdown(handle))
        print(f"\n✅ Test Completed! {analysis.total}/{analysis.max_score} "
              f"({analysis.percentage}%) Grade {analysis.grade}")
        for s in analysis.sections:
            print(f"   {s.name}: {s.score}/{s.total}")
        print(f"\n{analysis.headline} {analysis.message}")

    engine.discard(handle)


def cmd_serve(args):
    """Start web interface"""
    import subprocess

    print("🚀 Starting KRA Assessment...")
    print(f"   Open http://localhost:{args.port} in your browser")

    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        str(Path(__file__).parent / "ui" / "app.py"),
        "--server.port", str(args.port)
    ])


def main(argv=None):
    parser = argparse.ArgumentParser(description="KRA Assessment Engine")
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Stats command
    stats_parser = subparsers.add_parser('stats', help='Show question bank statistics')
    stats_parser.set_defaults(func=cmd_stats)

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate the question bank')
    validate_parser.add_argument('--limit', '-l', type=int, default=20, help='Max errors shown')
    validate_parser.set_defaults(func=cmd_validate)

    # Import command
    import_parser = subparsers.add_parser('import', help='Import questions from JSON or CSV')
    import_parser.add_argument('file', help='Path to .json or .csv file')
    import_parser.add_argument('--replace', action='store_true', help='Replace the bank instead of appending')
    import_parser.set_defaults(func=cmd_import)

    # Taker commands
    taker_parser = subparsers.add_parser('add-taker', help='Create or update a taker')
    taker_parser.add_argument('username')
    taker_parser.add_argument('--password', help='Prompted for when omitted')
    taker_parser.add_argument('--no-access', action='store_true', help='Create without attempt permission')
    taker_parser.set_defaults(func=cmd_add_taker)

    access_parser = subparsers.add_parser('set-access', help='Toggle attempt permission')
    access_parser.add_argument('username')
    access_parser.add_argument('access', choices=['on', 'off'])
    access_parser.set_defaults(func=cmd_set_access)

    takers_parser = subparsers.add_parser('takers', help='List takers and their access')
    takers_parser.set_defaults(func=cmd_takers)

    attempts_parser = subparsers.add_parser('attempts', help="List a taker's attempts")
    attempts_parser.add_argument('username')
    attempts_parser.add_argument('--latest', action='store_true', help='Show only the most recent attempt')
    attempts_parser.set_defaults(func=cmd_attempts)

    # Take command
    take_parser = subparsers.add_parser('take', help='Take the assessment in the terminal')
    take_parser.add_argument('username')
    take_parser.add_argument('--duration', type=int, default=None, help='Override time limit (seconds)')
    take_parser.set_defaults(func=cmd_take)

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Start web UI')
    serve_parser.add_argument('--port', type=int, default=8501)
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command:
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
