"""Text formatting for the tray tooltip and notifications."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from .i18n import T
from .models import HistoryPoint, NotificationEvent, RefreshResult, Unavailable, UsageSnapshot, clamp_pct
from .notifier import LABEL_FIVE_HOUR


def display_pct(pct: int, show_remaining: bool = False) -> int:
    """Return the value shown to the user: used, or ``100 - used`` when showing remaining."""
    used = clamp_pct(pct)
    return 100 - used if show_remaining else used


def format_tokens(n: int) -> str:
    if n >= 1_000_000:
        return f'{n / 1_000_000:.1f}M'
    if n >= 1_000:
        return f'{n / 1_000:.1f}K'
    return str(max(0, n))


def format_ago(delta: timedelta) -> str:
    s = max(0, int(delta.total_seconds()))
    if s < 60:
        return T['ago_seconds'].format(n=s)
    if s < 3600:
        return T['ago_minutes'].format(n=s // 60)
    return T['ago_hours'].format(n=s // 3600)


def time_until(reset: datetime | None, now: datetime | None = None) -> str:
    """Return human-readable reset time.

    Same day:  "Resets in 2h 20m (14:30)"
    Tomorrow:  "Resets tomorrow, 12:00"
    Later:     "Resets Sat., 12:00"
    """
    if reset is None:
        return ''

    now = now or datetime.now(timezone.utc)
    total_min = max(0, int((reset - now).total_seconds() / 60))
    if total_min == 0:
        return ''

    reset_local = reset.astimezone()
    today = now.astimezone().date()
    if reset_local.second >= 30:
        reset_local = reset_local.replace(second=0, microsecond=0) + timedelta(minutes=1)
    else:
        reset_local = reset_local.replace(second=0, microsecond=0)
    reset_date = reset_local.date()
    time_str = reset_local.strftime('%H:%M')

    if reset_date == today:
        if total_min >= 60:
            duration = T['duration_hm'].format(h=total_min // 60, m=total_min % 60)
        else:
            duration = T['duration_m'].format(m=total_min)
        return T['resets_in'].format(duration=duration, clock=time_str)

    if reset_date == today + timedelta(days=1):
        return T['resets_tomorrow'].format(clock=time_str)

    wd = T['weekdays'][reset_local.weekday()]
    return T['resets_weekday'].format(day=wd, clock=time_str)


def format_tooltip(result: RefreshResult, show_remaining: bool = False, offline_for: timedelta | None = None) -> str:
    """Format a refresh result as short tooltip text."""
    if isinstance(result, Unavailable):
        lines = [T['title'], T['blocked'] if result.blocked else T['no_data']]
        if offline_for is not None:
            lines.append(T['offline_since'].format(ago=format_ago(offline_for)))
        return '\n'.join(lines)

    lines = [f"{T['title']} ({result.plan.title()})"]
    if result.is_local_only:
        lines.append(T['local_only'])
    else:
        suffix = T['remaining'] if show_remaining else T['used']
        for short, pct, reset in (('5h', result.five_hour_pct, result.five_hour_reset_at),
                                  ('7d', result.weekly_pct, result.weekly_reset_at)):
            line = f'{short}: {display_pct(pct, show_remaining)}% {suffix}'
            reset_text = time_until(reset)
            if reset_text:
                line += f' ({reset_text})'
            lines.append(line)

    lines.append(T['today'].format(messages=result.today_messages, tokens=format_tokens(result.today_tokens)))
    if result.is_local_only:
        lines.append(T['week'].format(messages=result.weekly_messages, tokens=format_tokens(result.weekly_tokens)))
        if result.today_cost_usd:
            lines.append(T['cost_today'].format(cost=f'{result.today_cost_usd:.2f}'))

    return '\n'.join(lines)


def format_notification(event: NotificationEvent) -> str:
    window = T['window_five_hour'] if event.window_label == LABEL_FIVE_HOUR else T['window_weekly']
    return T['notify_threshold'].format(window=window, pct=event.pct)


SPARK_CHARS = '▁▂▃▄▅▆▇█'


def sparkline(values: list[int]) -> str:
    """Render percentages as block characters, 0% lowest and 100% full."""
    top = len(SPARK_CHARS) - 1
    return ''.join(SPARK_CHARS[min(top, clamp_pct(v) * len(SPARK_CHARS) // 100)] for v in values)


def format_details(history: list[HistoryPoint], local: UsageSnapshot | None) -> str:
    """Format the history trend and today's local breakdown for the Details balloon.

    Parameters
    ----------
    history : list of HistoryPoint
        Recorded API results, oldest first.
    local : UsageSnapshot or None
        The last snapshot built from the local session logs, if any.
    """
    lines = []
    if history:
        last = history[-1]
        lines.append(T['trend'].format(window='5h', spark=sparkline([p.five_hour_pct for p in history]), pct=last.five_hour_pct))
        lines.append(T['trend'].format(window='7d', spark=sparkline([p.weekly_pct for p in history]), pct=last.weekly_pct))

    if local is not None and local.today_messages:
        lines.append(T['breakdown'].format(
            inp=format_tokens(local.today_input_tokens),
            out=format_tokens(local.today_output_tokens),
            cache_read=format_tokens(local.today_cache_read_tokens),
            cache_write=format_tokens(local.today_cache_write_tokens),
        ))
        if local.today_cost_usd:
            lines.append(T['cost_today'].format(cost=f'{local.today_cost_usd:.2f}'))
        if local.burn_rate_tokens_per_hour:
            lines.append(T['burn_rate'].format(
                tokens=format_tokens(int(local.burn_rate_tokens_per_hour)),
                cost=f'{local.burn_rate_cost_per_hour:.2f}',
            ))
        if local.model_tokens_today:
            model, tokens = max(local.model_tokens_today.items(), key=lambda kv: kv[1])
            lines.append(T['top_model'].format(model=model, tokens=format_tokens(tokens)))
        if local.project_messages_today:
            project, messages = next(iter(local.project_messages_today.items()))
            lines.append(T['top_project'].format(project=project, messages=messages))

    return '\n'.join(lines) or T['no_details']
