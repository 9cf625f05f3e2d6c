import os
import sys
import json
import signal
import logging
import argparse
import threading

from core.app_context import AppContext
from core.batch.models import GroupBy, MatchType
from core.config_loader import load_config
from core.errors import MatchingError
from pipeline.control import PipelineBusyError, PipelineController
from pipeline.runner import run_digest, run_full_batch, run_incremental

logger = logging.getLogger(__name__)

# Set by SIGINT/SIGTERM; runs stop at the next batch boundary
stop_event = threading.Event()


def signal_handler(sig, frame):
    logger.info("Shutdown signal received")
    stop_event.set()


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _locked(args, run_name, func):
    controller = PipelineController(args.lock_file)
    try:
        with controller.hold(run_name):
            return func()
    except PipelineBusyError as e:
        logger.warning(str(e))
        return None


def cmd_batch(ctx: AppContext, args) -> int:
    result = _locked(args, "batch", lambda: run_full_batch(ctx, stop_event=stop_event))
    if result is None:
        return 1
    _print_json({
        'success': result.success,
        'matches': result.matches_count,
        'cancelled': result.cancelled,
        'error': result.error,
        'stats': result.stats,
        'execution_time': round(result.execution_time, 2),
    })
    return 0 if result.success else 1


def cmd_incremental(ctx: AppContext, args) -> int:
    result = _locked(
        args, "incremental",
        lambda: run_incremental(ctx, lookback_hours=args.lookback_hours, stop_event=stop_event),
    )
    if result is None:
        return 1
    _print_json({
        'success': result.success,
        'matches': result.matches_count,
        'notified': result.notified_count,
        'cancelled': result.cancelled,
        'error': result.error,
    })
    return 0 if result.success else 1


def cmd_digest(ctx: AppContext, args) -> int:
    result = _locked(args, f"digest-{args.frequency}", lambda: run_digest(ctx, args.frequency))
    if result is None:
        return 1
    _print_json(result.stats or {'error': result.error})
    return 0 if result.success else 1


def cmd_score(ctx: AppContext, args) -> int:
    score = ctx.engine.score_by_ids(args.candidate_id, args.job_id, persist=not args.no_persist)
    _print_json(score.to_dict())
    return 0


def cmd_explain(ctx: AppContext, args) -> int:
    explanation = ctx.engine.explain_match(args.candidate_id, args.job_id)
    _print_json(explanation.to_dict())
    return 0


def cmd_recommend(ctx: AppContext, args) -> int:
    recommendations = ctx.engine.recommend(
        args.job_id,
        candidate_ids=args.candidate_ids,
        user_id=args.user_id,
        min_score=args.min_score,
        limit=args.limit,
        lookback_days=args.lookback_days,
    )
    stats = ctx.engine.recommendation_statistics(recommendations)
    _print_json({
        'recommendations': [r.to_dict() for r in recommendations],
        'statistics': stats.to_dict(),
    })
    return 0


def cmd_weights(ctx: AppContext, args) -> int:
    weights = ctx.engine.estimate_weights(args.user_id, args.lookback_days)
    _print_json({
        'weights': weights.as_dict(),
        'sample_size': weights.sample_size,
        'successful_samples': weights.successful_samples,
    })
    return 0


def cmd_bulk(ctx: AppContext, args) -> int:
    bulk_job = ctx.engine.run_bulk_match(
        MatchType(args.match_type),
        job_ids=args.job_ids,
        candidate_ids=args.candidate_ids,
        stop_event=stop_event,
        top_n=args.top_n,
        min_score=args.min_score,
    )
    _print_json({'id': bulk_job.id, 'status': bulk_job.status.value, **bulk_job.results_summary()})
    return 0


def cmd_export(ctx: AppContext, args) -> int:
    results = ctx.engine.batch_match(
        jobs=args.job_ids,
        candidates=args.candidate_ids,
        top_n=args.top_n,
        min_score=args.min_score,
        group_by=GroupBy(args.group_by),
        persist=False,
        stop_event=stop_event,
    )
    if args.output == '-':
        rows = ctx.engine.export_csv(results, sys.stdout)
    else:
        with open(args.output, 'w', newline='') as f:
            rows = ctx.engine.export_csv(results, f)
    logger.info(f"Exported {rows} rows to {args.output}")
    return 0


def cmd_worker(ctx: AppContext, args) -> int:
    from notification.worker import start_worker
    start_worker(burst=args.burst, queues=args.queues, redis_url=ctx.config.notifications.redis_url)
    return 0


def cmd_init_db(ctx: AppContext, args) -> int:
    from database.database import init_db
    init_db()
    logger.info("Database tables created")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Candidate-job matching engine")
    parser.add_argument('--config', help='Path to config.yaml (default: $MATCHING_CONFIG or ./config.yaml)')
    parser.add_argument('--log-level', default=os.environ.get('LOG_LEVEL', 'INFO'),
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--lock-file', default=os.environ.get('MATCHING_LOCK_FILE', 'matching_pipeline.lock'))
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('batch', help='Nightly full batch match of every open job against every candidate')
    p.set_defaults(func=cmd_batch)

    p = sub.add_parser('incremental', help='Match jobs and candidates created in the last window')
    p.add_argument('--lookback-hours', type=int, default=None)
    p.set_defaults(func=cmd_incremental)

    p = sub.add_parser('digest', help='Send matching digests to employers')
    p.add_argument('--frequency', choices=['daily', 'weekly'], default='daily')
    p.set_defaults(func=cmd_digest)

    p = sub.add_parser('score', help='Score one candidate against one job')
    p.add_argument('candidate_id')
    p.add_argument('job_id')
    p.add_argument('--no-persist', action='store_true', help='Do not write match history')
    p.set_defaults(func=cmd_score)

    p = sub.add_parser('explain', help='Explain the match between a candidate and a job')
    p.add_argument('candidate_id')
    p.add_argument('job_id')
    p.set_defaults(func=cmd_explain)

    p = sub.add_parser('recommend', help='Recommend candidates for a job')
    p.add_argument('job_id')
    p.add_argument('--candidate-ids', nargs='+', default=None)
    p.add_argument('--user-id', default=None)
    p.add_argument('--min-score', type=int, default=None)
    p.add_argument('--limit', type=int, default=None)
    p.add_argument('--lookback-days', type=int, default=None)
    p.set_defaults(func=cmd_recommend)

    p = sub.add_parser('weights', help='Show learned weights for a user')
    p.add_argument('user_id')
    p.add_argument('--lookback-days', type=int, default=None)
    p.set_defaults(func=cmd_weights)

    p = sub.add_parser('bulk', help='Run a tracked bulk match')
    p.add_argument('match_type', choices=[t.value for t in MatchType])
    p.add_argument('--job-ids', nargs='+', default=None)
    p.add_argument('--candidate-ids', nargs='+', default=None)
    p.add_argument('--top-n', type=int, default=None)
    p.add_argument('--min-score', type=int, default=None)
    p.set_defaults(func=cmd_bulk)

    p = sub.add_parser('export', help='Batch match without storing and write the results as CSV')
    p.add_argument('--output', default='-', help="CSV path, '-' for stdout")
    p.add_argument('--job-ids', nargs='+', default=None)
    p.add_argument('--candidate-ids', nargs='+', default=None)
    p.add_argument('--top-n', type=int, default=None)
    p.add_argument('--min-score', type=int, default=None)
    p.add_argument('--group-by', choices=[g.value for g in GroupBy], default=GroupBy.JOB.value)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser('worker', help='Run an RQ worker for background dispatch')
    p.add_argument('--burst', action='store_true')
    p.add_argument('--queues', nargs='+', default=None)
    p.set_defaults(func=cmd_worker)

    p = sub.add_parser('init-db', help='Create database tables')
    p.set_defaults(func=cmd_init_db)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)
    ctx = AppContext.build(config)

    try:
        return args.func(ctx, args)
    except MatchingError as e:
        logger.error(str(e))
        return 2
    finally:
        if ctx.task_runner is not None:
            ctx.task_runner.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
