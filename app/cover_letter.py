# file: app/cover_letter.py
from __future__ import annotations
import re
from html import escape
from typing import Dict

SKILLS = [
    ("Frontend Technologies", "HTML5, CSS3, JavaScript, TypeScript, React.js, Next.js, D3.js, Three.js"),
    ("State Management", "Redux, Context API, Zustand, MobX"),
    ("Styling & UI Libraries", "SCSS, Tailwind CSS, Bootstrap, Material UI, Chakra UI, Ant Design"),
    ("Tooling", "Git, Figma, Jira, Webpack, Babel"),
    ("Testing", "Jest, React Testing Library"),
]

HIGHLIGHTS = [
    "Built and optimized scalable React applications with a focus on performance and UX",
    "Developed interactive data visualizations with D3.js and 3D components with Three.js",
    "Integrated RESTful APIs and built reusable UI components",
    "Worked with design and backend teams on cross-functional delivery",
    "Ran code reviews and set up CI/CD pipelines",
]


def subject_line(role_title: str, applicant_name: str, headline: str) -> str:
    subject = f"Application for {role_title} - {applicant_name}"
    return f"{subject} | {headline}" if headline else subject


def resume_filename(applicant_name: str) -> str:
    return re.sub(r"\s+", "_", applicant_name.strip()) + "_Resume.pdf"


def render_text(company_name: str, role_title: str, applicant_name: str, contact_email: str = "") -> str:
    skills = "\n".join(f"• {label}: {items}" for label, items in SKILLS)
    highlights = "\n".join(f"• {h}" for h in HIGHLIGHTS)
    contact = f"\nEmail: {contact_email}" if contact_email else ""
    return f"""Dear Hiring Manager at {company_name},

I hope this message finds you well.

I am writing to express my interest in the {role_title} position at {company_name}. I build modern, responsive and high-performing web applications, and I am confident my experience would make me a valuable addition to your team.

TECHNICAL EXPERTISE
{skills}

KEY HIGHLIGHTS
{highlights}

I am particularly drawn to {company_name} and would be glad to contribute to your projects. My resume is attached for your review; please let me know a convenient time for a conversation.

Thank you for your time and consideration.

Best regards,
{applicant_name}
Software Developer{contact}"""


def render_html(company_name: str, role_title: str, applicant_name: str, contact_email: str = "") -> str:
    company, role, name = escape(company_name), escape(role_title), escape(applicant_name)
    skills = "".join(f"<li><strong>{escape(label)}:</strong> {escape(items)}</li>" for label, items in SKILLS)
    highlights = "".join(f"<li>{escape(h)}</li>" for h in HIGHLIGHTS)
    contact = (
        f'<div><strong>Email:</strong> <a href="mailto:{escape(contact_email)}">{escape(contact_email)}</a></div>'
        if contact_email else ""
    )
    return f"""<!DOCTYPE html>
<html>
<body style="font-family: 'Segoe UI', Tahoma, sans-serif; line-height: 1.6; color: #333; max-width: 750px; margin: 0 auto;">
  <h1 style="color: #2563eb; font-size: 24px;">Application for {role}</h1>
  <p style="color: #666;">{company}</p>
  <p>Dear Hiring Manager at <strong>{company}</strong>,</p>
  <p>I hope this message finds you well.</p>
  <p>I am writing to express my interest in the <strong>{role}</strong> position at {company}.
  I build modern, responsive and high-performing web applications, and I am confident my experience
  would make me a valuable addition to your team.</p>
  <h3 style="color: #2563eb;">Technical Expertise</h3>
  <ul>{skills}</ul>
  <h3 style="color: #2563eb;">Key Highlights</h3>
  <ul>{highlights}</ul>
  <p>I am particularly drawn to {company} and would be glad to contribute to your projects.
  My resume is attached for your review; please let me know a convenient time for a conversation.</p>
  <p>Thank you for your time and consideration.</p>
  <div style="margin-top: 24px;">
    <div style="font-weight: 700; color: #2563eb;">Best regards,<br>{name}</div>
    <div style="color: #666;">Software Developer</div>
    {contact}
  </div>
</body>
</html>"""


def render(company_name: str, role_title: str, applicant_name: str, contact_email: str = "") -> Dict[str, str]:
    return {
        "text": render_text(company_name, role_title, applicant_name, contact_email),
        "html": render_html(company_name, role_title, applicant_name, contact_email),
    }
