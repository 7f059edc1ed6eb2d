"""
JSX and CSS templates for synthesized storefronts.

One renderer per section type. Renderers read only resolved link fields
(``href``, ``buttonHref``) so that nothing the layout author typed ends up
in an ``href`` unchecked.
"""

from __future__ import annotations

import re

from shopforge.core.layout import SectionType, Theme

FALLBACK_COMPONENT = "FallbackSection"

# Section type -> component name. Product grids share the collection renderer.
RENDERER_NAMES: dict[str, str] = {
    SectionType.NAVBAR: "Navbar",
    SectionType.HERO: "Hero",
    SectionType.FEATURES: "Features",
    SectionType.COLLECTION: "Collection",
    SectionType.PRODUCTS: "Collection",
    SectionType.TESTIMONIALS: "Testimonials",
    SectionType.PRICING: "Pricing",
    SectionType.CTA: "CallToAction",
    SectionType.GALLERY: "Gallery",
    SectionType.TEXTBLOCK: "TextBlock",
    SectionType.NEWSLETTER: "Newsletter",
    SectionType.FOOTER: "Footer",
}


def section_style() -> str:
    return (
        "const sectionStyle = (section) => ({\n"
        "  backgroundColor: section.bgColor,\n"
        "  color: section.textColor,\n"
        "})\n"
    )


RENDERER_TEMPLATES: dict[str, str] = {
    "Navbar": """
export default function Navbar({ section }) {
  const links = section.links || []
  return (
    <nav className="sf-navbar" style={sectionStyle(section)}>
      <div className="container sf-navbar-inner">
        <a className="sf-navbar-logo" href="#/">{section.logo}</a>
        <div className="sf-navbar-links">
          {links.map((link, index) => (
            <a key={index} href={link.href}>{link.text}</a>
          ))}
        </div>
      </div>
    </nav>
  )
}
""",
    "Hero": """
export default function Hero({ section }) {
  const style = {
    ...sectionStyle(section),
    backgroundImage: section.image ? `url(${JSON.stringify(String(section.image))})` : undefined,
  }
  return (
    <section className="sf-hero" style={style}>
      <div className="container sf-hero-inner">
        {section.title && <h1>{section.title}</h1>}
        {section.subtitle && <p>{section.subtitle}</p>}
        {section.buttonText && (
          <a className="sf-button" href={section.buttonHref}>{section.buttonText}</a>
        )}
      </div>
    </section>
  )
}
""",
    "Features": """
export default function Features({ section }) {
  const items = section.items || []
  return (
    <section className="sf-section" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        <div className="sf-grid">
          {items.map((item, index) => (
            <div key={index} className="sf-card sf-center">
              {item.icon && <div className="sf-icon">{item.icon}</div>}
              <h3>{item.title}</h3>
              <p>{item.description}</p>
            </div>
          ))}
        </div>
      </div>
    </section>
  )
}
""",
    "Collection": """
const formatPrice = (price) => {
  if (price === undefined || price === null || price === '') return ''
  const text = String(price)
  return /^[0-9.,]+$/.test(text) ? `$${text}` : text
}

export default function Collection({ section }) {
  const items = section.items || section.products || []
  return (
    <section className="sf-section" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        <div className="sf-grid">
          {items.map((item, index) => (
            <div key={index} className="sf-card sf-product">
              {item.image && <img src={item.image} alt={item.name || ''} />}
              <h3>{item.name}</h3>
              {formatPrice(item.price) && <p className="sf-price">{formatPrice(item.price)}</p>}
              {item.description && <p>{item.description}</p>}
            </div>
          ))}
        </div>
      </div>
    </section>
  )
}
""",
    "Testimonials": """
export default function Testimonials({ section }) {
  const items = section.items || []
  return (
    <section className="sf-section" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        <div className="sf-grid">
          {items.map((item, index) => {
            const rating = Math.max(0, Math.min(5, Number(item.rating) || 0))
            return (
              <figure key={index} className="sf-card">
                {rating > 0 && <div className="sf-rating">{'\\u2605'.repeat(rating)}</div>}
                <blockquote>{item.text}</blockquote>
                <figcaption>{item.name}</figcaption>
              </figure>
            )
          })}
        </div>
      </div>
    </section>
  )
}
""",
    "Pricing": """
export default function Pricing({ section }) {
  const items = section.items || []
  return (
    <section className="sf-section" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        <div className="sf-grid">
          {items.map((plan, index) => (
            <div key={index} className={plan.featured ? 'sf-card sf-featured' : 'sf-card'}>
              <h3>{plan.name}</h3>
              <p className="sf-price">{plan.price}</p>
              <ul>
                {(plan.features || []).map((feature, i) => (
                  <li key={i}>{feature}</li>
                ))}
              </ul>
              {plan.buttonText && <a className="sf-button" href={plan.href || '#'}>{plan.buttonText}</a>}
            </div>
          ))}
        </div>
      </div>
    </section>
  )
}
""",
    "CallToAction": """
export default function CallToAction({ section }) {
  return (
    <section className="sf-section sf-center" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        {section.subtitle && <p>{section.subtitle}</p>}
        {section.buttonText && (
          <a className="sf-button" href={section.buttonHref}>{section.buttonText}</a>
        )}
      </div>
    </section>
  )
}
""",
    "Gallery": """
export default function Gallery({ section }) {
  const images = section.images || []
  return (
    <section className="sf-section" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        <div className="sf-grid">
          {images.map((image, index) => {
            const src = typeof image === 'string' ? image : image.url
            const caption = typeof image === 'string' ? '' : image.caption
            return (
              <figure key={index} className="sf-gallery-item">
                {src && <img src={src} alt={caption || ''} />}
                {caption && <figcaption>{caption}</figcaption>}
              </figure>
            )
          })}
        </div>
      </div>
    </section>
  )
}
""",
    "TextBlock": """
export default function TextBlock({ section }) {
  const style = { ...sectionStyle(section), textAlign: section.alignment || 'left' }
  return (
    <section className="sf-section" style={style}>
      <div className="container">
        {section.heading && <h2 className="sf-title">{section.heading}</h2>}
        {section.content && <p className="sf-text">{section.content}</p>}
      </div>
    </section>
  )
}
""",
    "Newsletter": """
import { useState } from 'react'

export default function Newsletter({ section }) {
  const [submitted, setSubmitted] = useState(false)
  const onSubmit = (event) => {
    event.preventDefault()
    setSubmitted(true)
  }
  return (
    <section className="sf-section sf-center" style={sectionStyle(section)}>
      <div className="container">
        {section.title && <h2 className="sf-title">{section.title}</h2>}
        {section.subtitle && <p>{section.subtitle}</p>}
        {submitted ? (
          <p>Thanks for subscribing!</p>
        ) : (
          <form className="sf-newsletter" onSubmit={onSubmit}>
            <input type="email" required placeholder="you@example.com" />
            <button className="sf-button" type="submit">{section.buttonText || 'Subscribe'}</button>
          </form>
        )}
      </div>
    </section>
  )
}
""",
    "Footer": """
export default function Footer({ section }) {
  const links = section.links || []
  return (
    <footer className="sf-footer" style={sectionStyle(section)}>
      <div className="container sf-footer-inner">
        <div>
          <h4>{section.companyName}</h4>
          {section.tagline && <p>{section.tagline}</p>}
        </div>
        {links.length > 0 && (
          <div className="sf-footer-links">
            {links.map((link, index) => (
              <a key={index} href={link.href}>{link.text}</a>
            ))}
          </div>
        )}
      </div>
    </footer>
  )
}
""",
}

FALLBACK_TEMPLATE = """// Renders nothing in production builds. Development builds show the type
// name only, never the section data.
export default function FallbackSection({ section }) {
  if (!import.meta.env.DEV) return null
  return (
    <section className="sf-section sf-unknown">
      <div className="container">Unsupported section type: {String(section.type)}</div>
    </section>
  )
}
"""


def renderer_source(component: str) -> str:
    body = RENDERER_TEMPLATES[component]
    imports, _, rest = body.partition("\nexport default")
    return f"{imports.strip()}\n\n{section_style()}\nexport default{rest}".lstrip()


def section_renderer_source(components: list[str]) -> str:
    """SectionRenderer.jsx: type -> renderer table with a fallback default."""
    imports = "\n".join(
        f"import {name} from './sections/{name}.jsx'" for name in sorted(set(components))
    )
    entries = "\n".join(
        f"  {section_type!s}: {name},"
        for section_type, name in RENDERER_NAMES.items()
        if name in components
    )
    return f"""{imports}
import {FALLBACK_COMPONENT} from './sections/{FALLBACK_COMPONENT}.jsx'

const RENDERERS = {{
{entries}
}}

export default function SectionRenderer({{ section }}) {{
  const Renderer = Object.hasOwn(RENDERERS, section.type) ? RENDERERS[section.type] : {FALLBACK_COMPONENT}
  return <Renderer section={{section}} />
}}
"""


# =============================================================================
# Styles
# =============================================================================

_SAFE_COLOR = re.compile(
    r"#[0-9a-fA-F]{3,8}|[a-zA-Z]{3,20}|rgba?\([0-9.,%\s]+\)|hsla?\([0-9.,%\s]+\)"
)
_UNSAFE_CSS_CHARS = re.compile(r"[;{}<>\\\"\n\r]")


def css_color(value: str, default: str) -> str:
    value = value.strip()
    return value if _SAFE_COLOR.fullmatch(value) else default


def css_fonts(value: str, default: str) -> str:
    cleaned = _UNSAFE_CSS_CHARS.sub("", value).strip()
    return cleaned or default


def css_url(value: str) -> str:
    value = value.strip()
    if not value.lower().startswith(("https://", "http://")) or _UNSAFE_CSS_CHARS.search(value):
        return "none"
    return f'url("{value}")'


def app_css(theme: Theme) -> str:
    defaults = Theme()
    primary = css_color(theme.primary_color, defaults.primary_color)
    fonts = css_fonts(theme.fonts, defaults.fonts)
    banner = css_url(theme.banner_url) if theme.banner_url else "none"
    return f""":root {{
  --color-primary: {primary};
  --font-body: {fonts};
  --banner-image: {banner};
}}

.page {{
  min-height: 100vh;
  display: flex;
  flex-direction: column;
}}

.sf-navbar {{
  padding: 1rem 0;
  border-bottom: 1px solid #e5e7eb;
}}

.sf-navbar-inner,
.sf-footer-inner {{
  display: flex;
  justify-content: space-between;
  align-items: center;
  flex-wrap: wrap;
  gap: 1rem;
}}

.sf-navbar-logo {{
  font-size: 1.5rem;
  font-weight: 700;
  color: inherit;
  text-decoration: none;
}}

.sf-navbar-links,
.sf-footer-links {{
  display: flex;
  gap: 1.5rem;
}}

.sf-navbar-links a,
.sf-footer-links a {{
  color: inherit;
  text-decoration: none;
}}

.sf-hero {{
  min-height: 480px;
  display: flex;
  align-items: center;
  text-align: center;
  background-color: var(--color-primary);
  background-image: var(--banner-image);
  background-size: cover;
  background-position: center;
  color: #fff;
}}

.sf-hero h1 {{
  font-size: 3rem;
  margin-bottom: 1rem;
}}

.sf-hero p {{
  font-size: 1.25rem;
  margin-bottom: 2rem;
}}

.sf-section {{
  padding: 4rem 0;
}}

.sf-title {{
  font-size: 2.25rem;
  margin-bottom: 2rem;
}}

.sf-center {{
  text-align: center;
}}

.sf-grid {{
  display: grid;
  grid-template-columns: repeat(auto-fit, minmax(240px, 1fr));
  gap: 2rem;
}}

.sf-card {{
  padding: 1.5rem;
  border-radius: 8px;
  background: rgba(255, 255, 255, 0.6);
  box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
}}

.sf-featured {{
  border: 2px solid var(--color-primary);
}}

.sf-product img,
.sf-gallery-item img {{
  width: 100%;
  aspect-ratio: 1;
  object-fit: cover;
  border-radius: 6px;
}}

.sf-price {{
  font-weight: 700;
  color: var(--color-primary);
}}

.sf-icon {{
  font-size: 2.5rem;
  margin-bottom: 0.75rem;
}}

.sf-rating {{
  color: #f59e0b;
}}

.sf-text {{
  font-size: 1.1rem;
  line-height: 1.8;
}}

.sf-button {{
  display: inline-block;
  padding: 0.75rem 1.75rem;
  border: none;
  border-radius: 6px;
  background: var(--color-primary);
  color: #fff;
  text-decoration: none;
  cursor: pointer;
}}

.sf-newsletter {{
  display: flex;
  justify-content: center;
  gap: 0.5rem;
  margin-top: 1.5rem;
}}

.sf-newsletter input {{
  padding: 0.75rem;
  min-width: 260px;
  border: 1px solid #d1d5db;
  border-radius: 6px;
}}

.sf-footer {{
  margin-top: auto;
  padding: 2rem 0;
  background: #111827;
  color: #f9fafb;
}}

.sf-unknown {{
  border: 1px dashed #f59e0b;
  color: #92400e;
}}
"""
