"""
CLI 命令：stay
每日打卡与目标管理入口
"""
import asyncio
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

import click

# 添加项目根目录到 sys.path，以便导入 accountability 模块
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from accountability.analytics import (
    account_summary,
    goal_stats,
    journey_trend,
    momentum_phase,
    month_label,
    monthly_groups,
    running_journey,
    trend_symbol,
)
from accountability.categories import all_categories, category_or_default
from accountability.coach import create_coach_adapter
from accountability.exceptions import AccountabilityError
from accountability.models import CheckinState
from accountability.persistence import JsonFileDocumentStore
from accountability.store import AccountStore

TREND_ARROWS = {"up": "↑", "down": "↓", "flat": "→", "unknown": "·"}


def _default_store_factory(data_dir: Optional[str], profile: Optional[str]) -> Callable[[], AccountStore]:
    def factory() -> AccountStore:
        documents = JsonFileDocumentStore(Path(data_dir) if data_dir else None)
        return AccountStore(documents, create_coach_adapter(profile_name=profile))
    return factory


def _run(ctx: click.Context, action: Callable[[AccountStore], Awaitable[None]]) -> None:
    """Load the store, run one action, flush writes; report known errors and exit 1."""
    factory = ctx.obj["store_factory"]

    async def runner():
        store = factory()
        async with store:
            await action(store)

    try:
        asyncio.run(runner())
    except AccountabilityError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        ctx.exit(1)


@click.group()
@click.option("--data-dir", type=click.Path(file_okay=False), default=None, help="Account data directory")
@click.option("--profile", default=None, help="Coach profile from config/model.yaml")
@click.pass_context
def stay(ctx: click.Context, data_dir: Optional[str], profile: Optional[str]):
    """Stay on One: one goal per life area, daily accountability."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("store_factory", _default_store_factory(data_dir, profile))


@stay.command()
def categories():
    """列出全部生活领域"""
    for c in all_categories():
        click.echo(f"{c.id:>2}  {c.icon}  {c.name}")


@stay.command()
@click.argument("name")
@click.pass_context
def name(ctx: click.Context, name: str):
    """设置用户名"""
    async def action(store: AccountStore):
        store.set_name(name)
        click.echo(f"✅ Hello, {store.account.name}")

    _run(ctx, action)


@stay.group()
def goal():
    """目标管理"""
    pass


@goal.command("set")
@click.argument("category_id", type=int)
@click.argument("text")
@click.option("--metric", default=None, help="How progress is measured")
@click.pass_context
def goal_set(ctx: click.Context, category_id: int, text: str, metric: Optional[str]):
    """为某个领域设置目标"""
    async def action(store: AccountStore):
        store.set_goal(category_id, text, metric)
        c = category_or_default(category_id)
        click.echo(f"✅ {c.icon} {c.name}: {text} (score {store.score_of(category_id)}/100)")

    _run(ctx, action)


@goal.command("remove")
@click.argument("category_id", type=int)
@click.option("--purge", is_flag=True, help="Also delete score, logs and chat history")
@click.pass_context
def goal_remove(ctx: click.Context, category_id: int, purge: bool):
    """移除目标 (默认保留历史)"""
    async def action(store: AccountStore):
        if purge:
            store.purge_goal(category_id)
            click.echo(f"🗑️ Goal {category_id} and its history deleted")
        else:
            store.remove_goal(category_id)
            click.echo(f"🗑️ Goal {category_id} removed (history kept, re-adding restores it)")

    _run(ctx, action)


@stay.command()
@click.argument("category_id", type=int)
@click.argument("note")
@click.option("--mood", type=click.IntRange(1, 5), default=3, show_default=True)
@click.pass_context
def checkin(ctx: click.Context, category_id: int, note: str, mood: int):
    """今日打卡"""
    async def action(store: AccountStore):
        click.echo("📝 Asking your coach...")
        outcome = await store.record_checkin(category_id, note, mood)
        click.echo(f"\n{outcome.feedback}")
        remaining = store.pending_goals()
        if remaining:
            click.echo(f"\n⏳ {len(remaining)} goal(s) awaiting today's check-in")
        else:
            click.echo("\n🎉 Daily round complete")

    _run(ctx, action)


@stay.command()
@click.pass_context
def status(ctx: click.Context):
    """仪表盘：分数、连续天数、今日状态"""
    async def action(store: AccountStore):
        account = store.account
        ids = store.active_goal_ids()
        if not ids:
            click.echo("ℹ️ No goals yet. Use 'stay goal set <category> <text>'")
            return
        summary = account_summary(account, ids)
        click.echo(f"{account.name or 'Stay on One'}: average {summary.average_score}/100, {summary.total_logs} check-ins")
        for cid in ids:
            c = category_or_default(cid)
            logs = store.logs_for(cid)
            done = "✓" if store.checkin_state(cid) == CheckinState.SCORED else " "
            arrow = TREND_ARROWS[trend_symbol(logs).value]
            click.echo(
                f"[{done}] {c.icon} {c.name:<18} {store.score_of(cid):>3}/100 {arrow}  "
                f"streak {store.streak_for(cid)}d  {account.goals[cid].text}"
            )
        click.echo(f"\nRound: {store.round_state().value}")

    _run(ctx, action)


@stay.command()
@click.argument("category_id", type=int)
@click.pass_context
def progress(ctx: click.Context, category_id: int):
    """查看单个目标的历史"""
    async def action(store: AccountStore):
        g = store.require_goal(category_id)
        logs = store.logs_for(category_id)
        stats = goal_stats(logs, store.today())
        score = store.score_of(category_id)
        phase = momentum_phase(score, g.text)
        click.echo(f"{category_or_default(category_id).name}: {g.text}")
        click.echo(f"Score {score}/100 · {phase.name}")
        click.echo(f"Total {stats.total} · this month {stats.this_month} · streak {stats.streak}d")
        if stats.total:
            click.echo(f"Best +{stats.best_delta} · avg mood {stats.average_mood:.1f}/5")
            journey = running_journey(logs)
            click.echo(f"Journey (approx.): {journey_trend(journey):+d} pts over {len(journey)} logs")
        for month, entries in reversed(list(monthly_groups(logs).items())):
            click.echo(f"\n{month_label(month)}")
            for e in reversed(entries):
                click.echo(f"  {e.date.isoformat()[5:]}  {e.delta:+d}  {e.note}")
        click.echo(f"\n💡 {phase.suggestion}")

    _run(ctx, action)


@stay.command()
@click.option("--regenerate", is_flag=True, help="Ask the coach for a new manifesto")
@click.pass_context
def vision(ctx: click.Context, regenerate: bool):
    """查看或重新生成人生愿景"""
    async def action(store: AccountStore):
        if regenerate:
            click.echo(f"✨ Weaving your life vision from {len(store.active_goal_ids())} goals...")
            result = await store.regenerate_vision()
            if not result.ok:
                click.echo(f"⚠️ {result.text} (previous vision kept)", err=True)
        if store.account.vision:
            click.echo(store.account.vision)
        else:
            click.echo("ℹ️ No vision yet. Run 'stay vision --regenerate'")

    _run(ctx, action)


if __name__ == "__main__":
    stay()
