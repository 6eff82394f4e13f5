"""
Digest e-mail template.

Renders the Spanish stock-alert summary sent to each user. All text coming
from tenants or products is HTML-escaped before interpolation.
"""

import html
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from stock_alerts.core.models import Alert, AlertType, User

ALERTS_URL = "https://app.aiskualerts.com/app/alerts"
DEFAULT_TENANT_NAME = "Tu empresa"

WEEKDAY_NAMES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
MONTH_NAMES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

BADGES = {
    AlertType.OUT_OF_STOCK: ("Sin Stock", "#dc2626"),
    AlertType.LOW_STOCK: ("Stock Bajo", "#f59e0b"),
    AlertType.LOW_VELOCITY: ("Baja Rotacion", "#6366f1"),
}

ROW_COLORS = {
    AlertType.OUT_OF_STOCK: "#fef2f2",
    AlertType.LOW_STOCK: "#fffbeb",
    AlertType.LOW_VELOCITY: "#eef2ff",
}

CELL_STYLE = "padding: 12px; border-bottom: 1px solid #e5e7eb;"
HEADER_STYLE = (
    "padding: 12px; border-bottom: 2px solid #e5e7eb; font-size: 12px; "
    "font-weight: 600; color: #6b7280; text-transform: uppercase;"
)


@dataclass(frozen=True)
class DigestEmail:
    """A composed digest ready for the e-mail transport."""
    to: str
    subject: str
    html: str


def _h(value: Any) -> str:
    return html.escape("" if value is None else str(value))


def format_spanish_date(date: datetime) -> str:
    """Long Spanish date, e.g. "lunes, 15 de enero de 2024"."""
    weekday = WEEKDAY_NAMES[date.weekday()]
    month = MONTH_NAMES[date.month - 1]
    return f"{weekday}, {date.day} de {month} de {date.year}"


def _render_badge(alert_type: AlertType) -> str:
    label, color = BADGES[alert_type]
    return (
        '<span style="display: inline-block; padding: 2px 8px; border-radius: 4px; '
        f'font-size: 12px; font-weight: 600; color: white; background-color: {color};">{label}</span>'
    )


def _render_alert_row(alert: Alert) -> str:
    sku = alert.sku or "N/A"
    product_name = alert.product_name or f"Product {alert.variant_id}"
    threshold = "-" if alert.threshold_quantity is None else str(alert.threshold_quantity)

    return f"""
      <tr style="background-color: {ROW_COLORS[alert.alert_type]};">
        <td style="{CELL_STYLE} font-family: monospace; font-size: 14px;">{_h(sku)}</td>
        <td style="{CELL_STYLE}">{_h(product_name)}</td>
        <td style="{CELL_STYLE} text-align: center; font-weight: 600;">{alert.current_quantity}</td>
        <td style="{CELL_STYLE} text-align: center;">{threshold}</td>
        <td style="{CELL_STYLE} text-align: center;">{_render_badge(alert.alert_type)}</td>
      </tr>"""


def _render_stat(count: int, label: str, background: str, color: str, label_color: str) -> str:
    return f"""
                  <td style="padding: 16px; background-color: {background}; border-radius: 8px; text-align: center; width: 33%;">
                    <div style="font-size: 28px; font-weight: 700; color: {color};">{count}</div>
                    <div style="font-size: 12px; color: {label_color}; margin-top: 4px;">{label}</div>
                  </td>"""


def render_skipped_section(skipped_count: int, upgrade_url: Optional[str] = None) -> str:
    """Free-plan notice for thresholds that are not generating alerts."""
    if skipped_count <= 0:
        return ""

    if skipped_count == 1:
        wording = "umbral que no esta"
    else:
        wording = "umbrales que no estan"

    upgrade_button = ""
    if upgrade_url:
        upgrade_button = f"""
              <table role="presentation" cellspacing="0" cellpadding="0" style="margin-top: 12px;">
                <tr>
                  <td style="background-color: #f59e0b; border-radius: 4px;">
                    <a href="{_h(upgrade_url)}" style="display: inline-block; padding: 8px 16px; color: white; text-decoration: none; font-weight: 500; font-size: 14px;">Actualizar a Pro</a>
                  </td>
                </tr>
              </table>"""

    return f"""
          <tr>
            <td style="padding: 0 32px 24px;">
              <div style="padding: 16px; background-color: #fef3c7; border-radius: 8px;">
                <h3 style="margin: 0 0 8px 0; color: #92400e; font-size: 14px; font-weight: 600;">Omitidos por Limite del Plan Gratuito</h3>
                <p style="margin: 0; color: #78350f; font-size: 14px;">
                  Tienes {skipped_count} {wording} generando alertas.
                  Actualiza a Pro para monitoreo ilimitado de umbrales.
                </p>{upgrade_button}
              </div>
            </td>
          </tr>"""


def render_digest_html(tenant_name: str,
                       alerts: Sequence[Alert],
                       date: Optional[datetime] = None,
                       skipped_count: int = 0,
                       upgrade_url: Optional[str] = None) -> str:
    """
    Render the digest body.

    Returns an empty string when there are no alerts; callers must not send
    an empty digest.
    """
    if not alerts:
        return ""

    date = date or datetime.now(timezone.utc)
    name = _h(tenant_name)

    out_of_stock = sum(1 for a in alerts if a.alert_type == AlertType.OUT_OF_STOCK)
    low_stock = sum(1 for a in alerts if a.alert_type == AlertType.LOW_STOCK)
    low_velocity = sum(1 for a in alerts if a.alert_type == AlertType.LOW_VELOCITY)

    rows = "".join(_render_alert_row(alert) for alert in alerts)
    stats = '\n                  <td style="width: 16px;"></td>'.join([
        _render_stat(out_of_stock, "Sin Stock", "#fef2f2", "#dc2626", "#991b1b"),
        _render_stat(low_stock, "Stock Bajo", "#fffbeb", "#f59e0b", "#92400e"),
        _render_stat(low_velocity, "Baja Rotacion", "#eef2ff", "#6366f1", "#4338ca"),
    ])
    headers = "".join(
        f'\n                    <th style="{HEADER_STYLE} text-align: {align};">{title}</th>'
        for title, align in (
            ("SKU", "left"), ("Producto", "left"), ("Stock", "center"),
            ("Umbral", "center"), ("Tipo", "center"),
        )
    )

    return f"""<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Resumen de Alertas - {name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: #f3f4f6; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color: #f3f4f6;">
    <tr>
      <td align="center" style="padding: 40px 20px;">
        <table role="presentation" width="600" cellspacing="0" cellpadding="0" style="background-color: #ffffff; border-radius: 8px; box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);">
          <tr>
            <td style="padding: 32px; background-color: #0ea5e9; border-radius: 8px 8px 0 0;">
              <h1 style="margin: 0; color: #ffffff; font-size: 24px; font-weight: 600;">AISku Alerts</h1>
              <p style="margin: 8px 0 0; color: #e0f2fe; font-size: 14px;">Resumen de Inventario</p>
            </td>
          </tr>
          <tr>
            <td style="padding: 24px 32px 16px;">
              <h2 style="margin: 0; color: #1f2937; font-size: 20px; font-weight: 600;">{name}</h2>
              <p style="margin: 8px 0 0; color: #6b7280; font-size: 14px;">{format_spanish_date(date)}</p>
            </td>
          </tr>
          <tr>
            <td style="padding: 16px 32px;">
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0">
                <tr>{stats}
                </tr>
              </table>
            </td>
          </tr>
          <tr>
            <td style="padding: 24px 32px;">
              <h3 style="margin: 0 0 16px; color: #1f2937; font-size: 16px; font-weight: 600;">Detalle de Alertas ({len(alerts)})</h3>
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="border-collapse: collapse; border: 1px solid #e5e7eb; border-radius: 8px;">
                <thead>
                  <tr style="background-color: #f9fafb;">{headers}
                  </tr>
                </thead>
                <tbody>{rows}
                </tbody>
              </table>
            </td>
          </tr>
{render_skipped_section(skipped_count, upgrade_url)}
          <tr>
            <td style="padding: 16px 32px 32px;">
              <table role="presentation" cellspacing="0" cellpadding="0">
                <tr>
                  <td style="background-color: #0ea5e9; border-radius: 6px;">
                    <a href="{ALERTS_URL}" style="display: inline-block; padding: 12px 24px; color: #ffffff; text-decoration: none; font-size: 14px; font-weight: 600;">Ver Todas las Alertas</a>
                  </td>
                </tr>
              </table>
            </td>
          </tr>
          <tr>
            <td style="padding: 24px 32px; background-color: #f9fafb; border-radius: 0 0 8px 8px; border-top: 1px solid #e5e7eb;">
              <p style="margin: 0; color: #6b7280; font-size: 12px; text-align: center;">
                Este correo fue enviado automaticamente por AISku Alerts.<br>
                Para cambiar tus preferencias de notificacion, visita la seccion de Configuracion.
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def compose_digest_email(tenant_name: Optional[str],
                         user: User,
                         alerts: Sequence[Alert],
                         skipped_count: int = 0,
                         app_url: Optional[str] = None,
                         date: Optional[datetime] = None) -> DigestEmail:
    """
    Build the digest message for one user.

    The upgrade button is only rendered when ``app_url`` is configured; it
    links to the billing settings page.
    """
    display_name = tenant_name or DEFAULT_TENANT_NAME
    upgrade_url = f"{app_url.rstrip('/')}/settings/billing" if app_url else None

    body = render_digest_html(
        display_name,
        alerts,
        date=date,
        skipped_count=skipped_count,
        upgrade_url=upgrade_url,
    )

    return DigestEmail(
        to=user.recipient,
        subject=f"Resumen de Alertas - {display_name}",
        html=body,
    )
