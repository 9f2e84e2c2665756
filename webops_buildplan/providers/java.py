"""Java provider."""

import re
from typing import Dict, Optional

from ..app import App
from ..environment import Environment
from ..phase import BUILD, SETUP, Phase, Pkg, StartPhase
from .base import PhaseProvider

DEFAULT_JAVA_VERSION = '17'


class JavaProvider(PhaseProvider):
    """Detect and configure Java applications built with Maven or Gradle."""

    name = 'java'
    display_name = 'Java'

    def detect(self, app: App, env: Environment) -> bool:
        return (
            app.includes_file('pom.xml')
            or app.includes_file('build.gradle')
            or app.includes_file('build.gradle.kts')
        )

    def setup(self, app: App, env: Environment) -> Optional[Phase]:
        pkgs = [Pkg('jdk', self._detect_java_version(app))]
        build_tool = self._build_tool(app)
        if not self._has_wrapper(app, build_tool):
            pkgs.append(Pkg(build_tool))
        return Phase(SETUP, pkgs=pkgs)

    def build(self, app: App, env: Environment) -> Optional[Phase]:
        build_tool = self._build_tool(app)
        if build_tool == 'maven':
            mvn = './mvnw' if self._has_wrapper(app, build_tool) else 'mvn'
            cmd = f'{mvn} -DskipTests clean package'
            cache_directories = ['/root/.m2/repository']
        else:
            gradle = './gradlew' if self._has_wrapper(app, build_tool) else 'gradle'
            cmd = f'{gradle} build -x test'
            cache_directories = ['/root/.gradle']

        return Phase(BUILD, cmds=[cmd], cache_directories=cache_directories, depends_on=[SETUP])

    def start(self, app: App, env: Environment) -> Optional[StartPhase]:
        output_dir = 'target' if self._build_tool(app) == 'maven' else 'build/libs'
        jar = '*-runner.jar' if self._detect_framework(app) in ('quarkus', 'micronaut') else '*.jar'
        return StartPhase(f'java $JAVA_OPTS -jar {output_dir}/{jar}', only_include_files=[output_dir])

    def environment_variables(self, app: App, env: Environment) -> Dict[str, str]:
        return {'JAVA_OPTS': '-Xmx512m -Xms256m'}

    def _build_tool(self, app: App) -> str:
        return 'maven' if app.includes_file('pom.xml') else 'gradle'

    def _has_wrapper(self, app: App, build_tool: str) -> bool:
        return app.includes_file('mvnw' if build_tool == 'maven' else 'gradlew')

    def _build_file(self, app: App) -> str:
        for name in ('pom.xml', 'build.gradle', 'build.gradle.kts'):
            if app.includes_file(name):
                return app.read_file(name)
        return ''

    def _detect_framework(self, app: App) -> str:
        content = self._build_file(app).lower()
        if 'spring-boot' in content or 'org.springframework.boot' in content:
            return 'spring-boot'
        if 'quarkus' in content:
            return 'quarkus'
        if 'micronaut' in content:
            return 'micronaut'
        return 'java'

    def _detect_java_version(self, app: App) -> str:
        content = self._build_file(app)
        for pattern in (
            r'<java\.version>(\d+)</java\.version>',
            r'<maven\.compiler\.source>(\d+)</maven\.compiler\.source>',
            r'sourceCompatibility\s*=\s*["\']?(?:JavaVersion\.VERSION_)?(\d+)',
            r'languageVersion\.set\(JavaLanguageVersion\.of\((\d+)\)\)',
        ):
            match = re.search(pattern, content)
            if match:
                return match.group(1)
        return DEFAULT_JAVA_VERSION
