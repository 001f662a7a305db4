from contextlib import contextmanager
from typing import Any, Dict

import matplotlib as mpl

def theme_sportminer(base_size: float = 11, base_family: str = "", grid: bool = True) -> Dict[str, Any]:
    """
    Clean, colorblind-friendly matplotlib style for publications and slides.

    Args:
        base_size: Base font size in points.
        base_family: Base font family, "" keeps matplotlib's default.
        grid: Draw light major grid lines when True, no grid otherwise.

    Returns:
        A dict of rcParams, usable with ``matplotlib.rc_context`` or
        ``plt.rcParams.update``.
    """
    if base_size <= 0:
        raise ValueError("base_size must be positive.")

    theme = {
        'font.size': base_size,
        # Titles: bold and left aligned, subtitles in grey
        'axes.titlesize': base_size * 1.3,
        'axes.titleweight': 'bold',
        'axes.titlelocation': 'left',
        'axes.titlepad': 10,
        'figure.titlesize': base_size * 1.3,
        'figure.titleweight': 'bold',
        'axes.labelsize': base_size * 1.05,
        'axes.labelweight': 'bold',
        'xtick.labelsize': base_size * 0.9,
        'ytick.labelsize': base_size * 0.9,
        'xtick.color': '#333333',
        'ytick.color': '#333333',
        # Axis lines and a light panel border
        'axes.edgecolor': '#cccccc',
        'axes.linewidth': 0.5,
        'axes.spines.top': True,
        'axes.spines.right': True,
        'axes.facecolor': 'white',
        'figure.facecolor': 'white',
        'savefig.facecolor': 'white',
        # Legend
        'legend.title_fontsize': base_size * 0.95,
        'legend.fontsize': base_size * 0.85,
        'legend.facecolor': 'white',
        'legend.edgecolor': '#cccccc',
        'legend.frameon': True,
    }

    if base_family:
        theme['font.family'] = base_family

    if grid:
        theme.update({
            'axes.grid': True,
            'axes.grid.which': 'major',
            'grid.color': '#e5e5e5',
            'grid.linewidth': 0.3,
        })
    else:
        theme['axes.grid'] = False

    return theme

SUBTITLE_STYLE = {'color': '#666666'}
STRIP_STYLE = {'fontweight': 'bold', 'color': '#333333', 'backgroundcolor': '#f2f2f2'}

@contextmanager
def use_theme(**kwargs):
    """Apply theme_sportminer() for the duration of the block."""
    with mpl.rc_context(theme_sportminer(**kwargs)):
        yield
