"""
Centralized styles module for the HeartSim UI.

This module provides the theme, colors, fonts, and style builders shared by
the ward view and the bedside monitor.
"""

from heartsim.core.enums import RiskLevel

# =============================================================================
# COLORS - Unified color palette
# =============================================================================

COLORS = {
    # Core UI surfaces
    'background': '#0B0F14',
    'background_alt': '#0F141C',
    'panel': '#151B24',
    'card': '#1C2431',
    'header': '#10151D',

    # Borders & Dividers
    'border': '#2A3341',
    'border_light': '#364355',

    # Text
    'text': '#E7ECF4',
    'text_secondary': '#C1CAD8',
    'text_dim': '#7E8A9C',

    # Controls
    'control': '#1A2230',
    'control_hover': '#222C3A',
    'control_pressed': '#283246',

    # Accent Colors
    'primary': '#4C86F7',
    'success': '#2FB36D',
    'warning': '#E1A644',
    'danger': '#E26D5C',
    'info': '#4BA3C7',

    # Vital Signs (monitor)
    'ecg': '#35C679',
    'spo2': '#4BA3C7',
    'resp': '#D6A34D',
    'bp': '#D05757',
    'temp': '#5A8CC6',
    'ai': '#9E7BC9',
}

# =============================================================================
# FONTS
# =============================================================================

FONTS = {
    'family': 'Arial',
    'size_small': '11px',
    'size_normal': '12px',
    'size_medium': '13px',
    'size_large': '14px',
    'size_title': '16px',
    'size_display': '20px',
    'size_numeric': '34px',
}

# Alarm status (from monitors.alarms.metric_status) -> color.
STATUS_COLORS = {
    'critical': COLORS['danger'],
    'warning': COLORS['warning'],
}

RISK_COLORS = {
    RiskLevel.STABLE: COLORS['success'],
    RiskLevel.LOW: COLORS['info'],
    RiskLevel.MODERATE: COLORS['warning'],
    RiskLevel.HIGH: COLORS['danger'],
    RiskLevel.CRITICAL: COLORS['danger'],
    RiskLevel.PENDING: COLORS['text_dim'],
    RiskLevel.INSUFFICIENT_DATA: COLORS['text_dim'],
    RiskLevel.ERROR: COLORS['warning'],
}

# =============================================================================
# STYLE BUILDERS - Functions to generate stylesheet strings
# =============================================================================

def get_base_widget_style():
    """Base style for all widgets."""
    return f"""
        QWidget {{
            background-color: {COLORS['background']};
            color: {COLORS['text']};
            font-family: {FONTS['family']};
            font-size: {FONTS['size_normal']};
        }}
        QLabel {{
            background-color: transparent;
            background: none;
            color: {COLORS['text']};
        }}
    """

def get_spinbox_style():
    return f"""
        QSpinBox {{
            background-color: {COLORS['control']};
            color: {COLORS['text']};
            border: 1px solid {COLORS['border']};
            border-radius: 6px;
            padding: 4px 8px;
            font-size: {FONTS['size_medium']};
            min-width: 70px;
        }}
        QSpinBox:focus {{
            border-color: {COLORS['primary']};
        }}
    """

def get_combobox_style():
    """Style for QComboBox."""
    return f"""
        QComboBox {{
            background-color: {COLORS['control']};
            color: {COLORS['text']};
            border: 1px solid {COLORS['border']};
            border-radius: 6px;
            padding: 6px 10px;
            font-size: {FONTS['size_medium']};
            min-width: 100px;
        }}
        QComboBox:focus {{
            border-color: {COLORS['primary']};
        }}
        QComboBox::drop-down {{
            border: none;
            width: 24px;
        }}
    """

def get_list_style():
    """Style for the patient list."""
    return f"""
        QListWidget {{
            background-color: {COLORS['panel']};
            border: 1px solid {COLORS['border']};
            border-radius: 8px;
            padding: 4px;
        }}
        QListWidget::item {{
            padding: 6px 8px;
            border-radius: 6px;
        }}
        QListWidget::item:selected {{
            background-color: {get_rgba(COLORS['primary'], 0.25)};
            color: {COLORS['text']};
        }}
    """

def get_button_style(variant="neutral", outlined=False, padding="8px 16px", min_width=None):
    """Style for QPushButton with various variants."""
    variant_map = {
        "primary": COLORS['primary'],
        "success": COLORS['success'],
        "warning": COLORS['warning'],
        "danger": COLORS['danger'],
        "info": COLORS['info'],
        "neutral": COLORS['control'],
    }
    base = variant_map.get(variant, COLORS['control'])
    is_neutral = base == COLORS['control']
    if outlined:
        text = COLORS['text'] if is_neutral else base
        background = "transparent"
        border = f"1px solid {COLORS['border_light'] if is_neutral else base}"
        hover_bg = get_rgba(base, 0.12)
    else:
        text = COLORS['text'] if is_neutral else "white"
        background = base
        border = "1px solid transparent"
        hover_bg = COLORS['control_hover'] if is_neutral else get_rgba(base, 0.9)

    min_width_rule = f"min-width: {min_width}px;" if min_width else ""

    return f"""
        QPushButton {{
            background-color: {background};
            color: {text};
            padding: {padding};
            border-radius: 8px;
            font-size: {FONTS['size_medium']};
            font-weight: 600;
            border: {border};
            {min_width_rule}
        }}
        QPushButton:hover {{
            background-color: {hover_bg};
        }}
        QPushButton:disabled {{
            background-color: {COLORS['background_alt']};
            color: {COLORS['text_dim']};
            border-color: {COLORS['border']};
        }}
    """

def get_toggle_button_style(active_color):
    """Style for toggle/checkable buttons."""
    return f"""
        QPushButton {{
            background-color: {COLORS['control']};
            color: {COLORS['text']};
            border: 1px solid {COLORS['border']};
            border-radius: 8px;
            padding: 8px 16px;
            font-weight: 600;
        }}
        QPushButton:checked {{
            background-color: {get_rgba(active_color, 0.25)};
            border-color: {active_color};
            color: {active_color};
        }}
    """

def get_bar_style(border_edge="bottom"):
    """Style for top/bottom bars."""
    edge = "bottom" if border_edge == "bottom" else "top"
    return f"""
        QFrame {{
            background-color: {COLORS['header']};
            border-{edge}: 1px solid {COLORS['border']};
        }}
    """

def get_tinted_frame_style(color, alpha=0.06, radius=8):
    """Subtle tinted frame for numeric panels."""
    return f"""
        QFrame {{
            background-color: {get_rgba(color, alpha)};
            border: 1px solid {COLORS['border']};
            border-radius: {radius}px;
        }}
    """

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def hex_to_rgb(hex_color):
    """Convert hex color to r, g, b string for rgba()."""
    hex_color = hex_color.lstrip('#')
    r, g, b = tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))
    return f"{r}, {g}, {b}"

def get_rgba(hex_color, alpha):
    """Get rgba string from hex color and alpha value (0-1)."""
    return f"rgba({hex_to_rgb(hex_color)}, {alpha})"

def status_color(status, default=None):
    """Color for an alarm status string ('critical' / 'warning' / 'normal')."""
    return STATUS_COLORS.get(status, default or COLORS['text'])

# =============================================================================
# PRE-BUILT STYLE CONSTANTS for common use
# =============================================================================

STYLE_SPINBOX = get_spinbox_style()
STYLE_COMBOBOX = get_combobox_style()
STYLE_LIST = get_list_style()
