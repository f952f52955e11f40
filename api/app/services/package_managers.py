"""Per-platform URL builders and the project fields derived from them."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from app.models.project import Project


class PackageManager:
    """Base platform: every URL is unknown."""

    formatted_name = ""

    @classmethod
    def package_link(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        return None

    @classmethod
    def download_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        return None

    @classmethod
    def documentation_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        return None

    @classmethod
    def install_instructions(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        return None


class Rubygems(PackageManager):
    formatted_name = "Rubygems"

    @classmethod
    def package_link(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        url = f"https://rubygems.org/gems/{project.name}"
        return f"{url}/versions/{version}" if version else url

    @classmethod
    def download_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        if not version:
            return None
        return f"https://rubygems.org/downloads/{name}-{version}.gem"

    @classmethod
    def documentation_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        return f"http://www.rubydoc.info/gems/{name}/{version or ''}"

    @classmethod
    def install_instructions(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        cmd = f"gem install {project.name}"
        return f"{cmd} -v {version}" if version else cmd


class NPM(PackageManager):
    formatted_name = "npm"

    @classmethod
    def package_link(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        url = f"https://www.npmjs.com/package/{project.name}"
        return f"{url}/v/{version}" if version else url

    @classmethod
    def download_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        if not version:
            return None
        # Scoped packages ("@scope/pkg") name the tarball after the bare package.
        basename = name.rsplit("/", 1)[-1]
        return f"https://registry.npmjs.org/{name}/-/{basename}-{version}.tgz"

    @classmethod
    def install_instructions(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        cmd = f"npm install {project.name}"
        return f"{cmd}@{version}" if version else cmd


class Pypi(PackageManager):
    formatted_name = "PyPI"

    @classmethod
    def package_link(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        url = f"https://pypi.org/project/{project.name}/"
        return f"{url}{version}/" if version else url

    @classmethod
    def documentation_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        return f"https://{quote(name.lower())}.readthedocs.io/"

    @classmethod
    def install_instructions(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        cmd = f"pip install {project.name}"
        return f"{cmd}=={version}" if version else cmd


class Cargo(PackageManager):
    formatted_name = "Cargo"

    @classmethod
    def package_link(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        url = f"https://crates.io/crates/{project.name}"
        return f"{url}/{version}" if version else url

    @classmethod
    def download_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        if not version:
            return None
        return f"https://crates.io/api/v1/crates/{name}/{version}/download"

    @classmethod
    def documentation_url(cls, name: str, version: Optional[str] = None) -> Optional[str]:
        return f"https://docs.rs/{name}/{version or ''}"

    @classmethod
    def install_instructions(cls, project: Project, version: Optional[str] = None) -> Optional[str]:
        cmd = f"cargo install {project.name}"
        return f"{cmd} --version {version}" if version else cmd


PLATFORMS: dict[str, type[PackageManager]] = {
    "rubygems": Rubygems,
    "npm": NPM,
    "pypi": Pypi,
    "cargo": Cargo,
}


def platform_class(platform: str) -> type[PackageManager]:
    return PLATFORMS.get((platform or "").lower(), PackageManager)


def download_url(project: Project) -> Optional[str]:
    version = project.latest_stable_release_number or project.latest_release_number
    return platform_class(project.platform).download_url(project.name, version)


def latest_download_url(project: Project) -> Optional[str]:
    return platform_class(project.platform).download_url(project.name, project.latest_release_number)


def package_manager_url(project: Project) -> Optional[str]:
    return platform_class(project.platform).package_link(project)


def repository_license(project: Project) -> Optional[str]:
    return project.repository.license if project.repository else None


def forks(project: Project) -> int:
    return project.repository.forks_count if project.repository else 0


def stars(project: Project) -> int:
    return project.repository.stargazers_count if project.repository else 0
