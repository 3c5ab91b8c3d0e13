from ..schemas import WidgetConfig

# Shared by the server-rendered preview and the generated browser script.
BASE_STYLES = """
:host { all: initial; display: block; }
.amp-widget {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  width: %(width)s;
  max-width: %(max_width)dpx;
  margin: 0 auto;
  border-radius: %(border_radius)dpx;
  overflow: hidden;
  background-color: %(background_color)s;
  color: %(text_color)s;
  box-sizing: border-box;
}
.amp-widget * { box-sizing: border-box; }
.amp-widget--hero_banner { position: relative; min-height: 300px; }
.amp-widget__image { display: block; width: 100%%; height: 300px; object-fit: cover; }
.amp-widget__content { padding: 24px; }
.amp-widget__headline { font-size: 28px; font-weight: 700; margin: 0 0 8px 0; }
.amp-widget__subheadline { font-size: 16px; margin: 0 0 16px 0; opacity: 0.9; }
.amp-widget__cta {
  display: inline-block;
  padding: 12px 24px;
  background-color: %(text_color)s;
  color: %(background_color)s;
  text-decoration: none;
  font-weight: 600;
  border-radius: 6px;
  transition: opacity 0.2s;
}
.amp-widget__cta:hover { opacity: 0.9; }
.amp-widget__skeleton {
  background: linear-gradient(90deg, #f0f0f0 25%%, #e0e0e0 50%%, #f0f0f0 75%%);
  background-size: 200%% 100%%;
  animation: amp-shimmer 1.5s infinite;
}
.amp-widget__skeleton--headline { height: 32px; width: 70%%; }
.amp-widget__skeleton--subheadline { height: 20px; width: 50%%; margin-top: 8px; }
.amp-widget__spinner {
  width: 32px; height: 32px; margin: 24px auto;
  border: 3px solid #e0e0e0; border-top-color: %(text_color)s;
  border-radius: 50%%;
  animation: amp-spin 0.8s linear infinite;
}
.amp-widget--fade { animation: amp-fade-in 0.3s ease-in-out; }
.amp-widget--slide { animation: amp-slide-up 0.3s ease-out; }
@keyframes amp-shimmer { 0%% { background-position: 200%% 0; } 100%% { background-position: -200%% 0; } }
@keyframes amp-spin { to { transform: rotate(360deg); } }
@keyframes amp-fade-in { from { opacity: 0; } to { opacity: 1; } }
@keyframes amp-slide-up { from { transform: translateY(10px); opacity: 0; } to { transform: translateY(0); opacity: 1; } }
"""

HERO_STYLES = """
.amp-widget--hero_banner .amp-widget__content {
  position: absolute; bottom: 0; left: 0; right: 0;
  background: linear-gradient(transparent, rgba(0,0,0,0.7));
}
.amp-widget--hero_banner .amp-widget__headline,
.amp-widget--hero_banner .amp-widget__subheadline { color: #fff; }
.amp-widget--hero_banner .amp-widget__cta { background-color: #fff; color: #000; }
"""


def build_stylesheet(widget_config: WidgetConfig) -> str:
    """Render the widget stylesheet for one configuration."""
    css = BASE_STYLES % {
        "width": widget_config.width,
        "max_width": widget_config.max_width,
        "border_radius": widget_config.border_radius,
        "background_color": widget_config.background_color,
        "text_color": widget_config.text_color,
    }
    if widget_config.type == "hero_banner":
        css += HERO_STYLES
    return css
