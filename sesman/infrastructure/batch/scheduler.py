"""バッチスケジューラー管理"""

from apscheduler.schedulers.background import BackgroundScheduler

from sesman.core.logging import get_logger

from .registry import TaskRegistry

logger = get_logger(__name__)


def create_scheduler(registry: TaskRegistry) -> BackgroundScheduler:
    """
    スケジューラーを作成し、登録されたタスクをセットアップする。

    同じタスクの実行が重なった場合は後続をスキップする。

    Args:
        registry: タスクが登録されたレジストリ

    Returns:
        BackgroundScheduler: タスクが登録されたスケジューラー

    Example:
        >>> scheduler = create_scheduler(registry)
        >>> start_scheduler(scheduler)
    """
    scheduler = BackgroundScheduler()

    for task_id, task_info in registry.get_all().items():
        scheduler.add_job(
            task_info["func"],
            trigger=task_info["trigger"],
            id=task_id,
            name=task_info["description"] or task_id,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"[SCHEDULER] Registered task: {task_id}")

    return scheduler


def start_scheduler(scheduler: BackgroundScheduler) -> None:
    """
    スケジューラーを起動し、次回実行時刻をログに出力する。

    Args:
        scheduler: 起動するスケジューラー
    """
    scheduler.start()
    logger.info("[SCHEDULER] Started")

    for job in scheduler.get_jobs():
        logger.info(f"[SCHEDULER] {job.id} next run: {job.next_run_time}")


def stop_scheduler(scheduler: BackgroundScheduler) -> None:
    """
    スケジューラーを停止する。

    実行中のジョブの完了は待たない。

    Args:
        scheduler: 停止するスケジューラー
    """
    scheduler.shutdown(wait=False)
    logger.info("[SCHEDULER] Stopped")
