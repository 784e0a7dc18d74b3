"""HTML email bodies for run outcomes, usage alerts and weekly digests."""

import json
from datetime import datetime, timezone
from html import escape
from typing import Any, Optional

from browsercron.models.notification import DigestStats

SUCCESS_COLOR = "#10b981"
FAILURE_COLOR = "#ef4444"
WARNING_GRADIENT = "linear-gradient(135deg, #f59e0b 0%, #d97706 100%)"
DIGEST_GRADIENT = "linear-gradient(135deg, #6366f1 0%, #4f46e5 100%)"

BASE_STYLE = """
      body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
             line-height: 1.6; color: #333; margin: 0; padding: 0; background-color: #f3f4f6; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { color: white; padding: 30px 20px; border-radius: 8px 8px 0 0; text-align: center; }
      .header h1 { margin: 0; font-size: 24px; font-weight: 600; }
      .content { background: white; padding: 30px 20px; border-radius: 0 0 8px 8px; }
      .label { font-weight: 600; color: #6b7280; display: inline-block; min-width: 80px; }
      .button { display: inline-block; background: #4f46e5; color: white !important; padding: 12px 24px;
                text-decoration: none; border-radius: 6px; margin-top: 20px; font-weight: 500; }
      .footer { text-align: center; margin-top: 30px; color: #6b7280; font-size: 14px; }
      .footer a { color: #4f46e5; text-decoration: none; }
"""


def _document(header_background: str, title: str, body: str, footer: str, extra_style: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>{BASE_STYLE}{extra_style}
      .header {{ background: {header_background}; }}
    </style>
  </head>
  <body>
    <div class="container">
      <div class="header"><h1>{title}</h1></div>
      <div class="content">
{body}
      </div>
      <div class="footer">
{footer}
      </div>
    </div>
  </body>
</html>"""


def render_task_email(
    app_url: str,
    task_name: str,
    task_id: str,
    run_id: str,
    succeeded: bool,
    output: Any = None,
    error: Optional[str] = None,
    duration_ms: Optional[int] = None,
    sent_at: Optional[datetime] = None,
) -> str:
    """Render the run outcome email."""
    color = SUCCESS_COLOR if succeeded else FAILURE_COLOR
    sent_at = sent_at or datetime.now(timezone.utc)
    task_url = f"{app_url}/tasks/{escape(task_id)}"

    parts = [
        f"<p>Your automation task <strong>{escape(task_name)}</strong> has "
        f"{'completed successfully' if succeeded else 'failed'}.</p>",
        f'<div class="info" style="border-left: 4px solid {color};">',
        f'<p><span class="label">Status:</span> {"Success ✓" if succeeded else "Failure ✗"}</p>',
        f'<p><span class="label">Run ID:</span> {escape(run_id)}</p>',
    ]
    if duration_ms:
        parts.append(f'<p><span class="label">Duration:</span> {round(duration_ms / 1000)}s</p>')
    parts.append(f'<p><span class="label">Time:</span> {sent_at.strftime("%Y-%m-%d %H:%M:%S %Z")}</p>')
    parts.append("</div>")

    if error:
        parts.append(
            '<div class="error-box"><p class="label">Error Details:</p>'
            f'<p style="margin-top: 10px;">{escape(error)}</p></div>'
        )
    if output:
        pretty = json.dumps(output, indent=2, ensure_ascii=False, default=str)
        parts.append(f'<div class="output-box"><pre>{escape(pretty)}</pre></div>')

    parts.append(f'<a href="{task_url}" class="button">View Task Details</a>')

    footer = (
        "<p>You're receiving this because you enabled notifications for this task.</p>"
        f'<p><a href="{task_url}">Manage notification settings</a></p>'
    )
    extra = """
      .info { background: #f9fafb; padding: 15px; border-radius: 6px; margin: 15px 0; }
      .error-box { background: #fee2e2; border-left: 4px solid #ef4444; padding: 15px; border-radius: 6px; margin: 15px 0; }
      .output-box { background: #1f2937; color: #f3f4f6; padding: 15px; border-radius: 6px; overflow-x: auto; margin: 15px 0; }
      .output-box pre { margin: 0; font-family: 'Courier New', monospace; font-size: 13px; white-space: pre-wrap; }
"""
    title = "✅ Task Completed" if succeeded else "❌ Task Failed"
    return _document(color, title, "\n".join(parts), footer, extra)


def render_usage_limit_alert(
    app_url: str,
    user_name: str,
    limit_type: str,
    current: int,
    limit: int,
    plan: str,
) -> str:
    """Render the usage-limit alert with a progress bar."""
    percentage = round(current / limit * 100) if limit else 100
    bar_width = min(percentage, 100)

    body = f"""<p>Hi {escape(user_name)},</p>
<p>You're approaching your {limit_type} limit on the <strong>{escape(plan)}</strong> plan.</p>
<div class="progress-bar">
  <div class="progress-fill" style="width: {bar_width}%">{current} / {limit} ({percentage}%)</div>
</div>
<div class="info-box">
  <p><strong>Current usage:</strong> {current} {limit_type}</p>
  <p><strong>Plan limit:</strong> {limit} {limit_type}</p>
  <p><strong>Remaining:</strong> {max(limit - current, 0)} {limit_type}</p>
</div>
<p>To continue using BrowserCron without interruption, consider upgrading to a higher plan.</p>
<a href="{app_url}/pricing" class="button">View Plans &amp; Upgrade</a>"""

    footer = f'<p><a href="{app_url}/dashboard">View Dashboard</a></p>'
    extra = """
      .progress-bar { background: #e5e7eb; height: 30px; border-radius: 15px; overflow: hidden; margin: 20px 0; }
      .progress-fill { background: linear-gradient(90deg, #f59e0b 0%, #d97706 100%); height: 100%; color: white;
                       font-weight: 600; font-size: 14px; text-align: center; line-height: 30px; }
      .info-box { background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; border-radius: 6px; margin: 20px 0; }
"""
    return _document(WARNING_GRADIENT, "⚠️ Usage Limit Alert", body, footer, extra)


def render_weekly_digest(app_url: str, user_name: str, stats: DigestStats) -> str:
    """Render the weekly summary; lists at most five tasks."""
    task_items = "".join(
        f'<div class="task-item"><div class="task-name">{escape(t.name)}</div>'
        f'<div class="task-stats">{t.runs} runs • {t.success_rate}% success rate</div></div>'
        for t in stats.tasks[:5]
    )
    task_section = f'<h3>Top Tasks</h3><div class="task-list">{task_items}</div>' if stats.tasks else ""

    body = f"""<p>Hi {escape(user_name)},</p>
<p>Here's a summary of your automation tasks from the past week:</p>
<table class="stats"><tr>
  <td class="stat-card"><div class="stat-value">{stats.total_runs}</div><div class="stat-label">Total Runs</div></td>
  <td class="stat-card"><div class="stat-value" style="color: {SUCCESS_COLOR};">{stats.successful_runs}</div><div class="stat-label">Successful</div></td>
  <td class="stat-card"><div class="stat-value" style="color: {FAILURE_COLOR};">{stats.failed_runs}</div><div class="stat-label">Failed</div></td>
</tr></table>
<p><strong>Overall Success Rate:</strong> {stats.success_rate}%</p>
{task_section}
<a href="{app_url}/dashboard" class="button">View Dashboard</a>"""

    footer = "<p>You're receiving this weekly digest because you enabled it in your settings.</p>"
    extra = """
      .stats { width: 100%; border-spacing: 15px 0; margin: 20px 0; }
      .stat-card { background: #f9fafb; padding: 15px; border-radius: 6px; text-align: center; }
      .stat-value { font-size: 32px; font-weight: 700; color: #4f46e5; }
      .stat-label { font-size: 12px; color: #6b7280; text-transform: uppercase; margin-top: 5px; }
      .task-item { background: #f9fafb; padding: 15px; border-radius: 6px; margin: 10px 0; border-left: 4px solid #4f46e5; }
      .task-name { font-weight: 600; margin-bottom: 5px; }
      .task-stats { font-size: 14px; color: #6b7280; }
"""
    return _document(DIGEST_GRADIENT, "📊 Your Weekly Summary", body, footer, extra)
