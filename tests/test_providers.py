"""Tests for ecosystem providers."""

import unittest

from repo_fixtures import RepoTestCase

from webops_buildplan import providers as provider_registry
from webops_buildplan.app import App
from webops_buildplan.environment import Environment
from webops_buildplan.providers import (
    DenoProvider,
    DjangoProvider,
    ElixirProvider,
    GoProvider,
    JavaProvider,
    NodeProvider,
    PhpProvider,
    PythonProvider,
    RubyProvider,
    RustProvider,
    StaticfileProvider,
    get_providers,
)

DENO_SERVER = 'import { serve } from "https://deno.land/std/http/server.ts";\n\nserve(() => new Response("ok"));\n'


class ProviderTestCase(RepoTestCase):

    def contribute(self, provider, files, env=None):
        self.make_repo(files)
        app = App(self.repo_path)
        env = env or Environment()
        self.assertTrue(provider.detect(app, env))
        return provider.contribute(app, env)


class TestRegistry(unittest.TestCase):

    def test_priority_order(self) -> None:
        names = [provider.name for provider in get_providers()]
        self.assertEqual(names[0], 'deno')
        self.assertLess(names.index('django'), names.index('python'))
        self.assertEqual(names[-1], 'staticfile')
        self.assertEqual(len(names), len(set(names)))

    def test_registry_exports(self) -> None:
        self.assertIn('get_providers', provider_registry.__all__)
        self.assertFalse(hasattr(provider_registry, 'get_provider'))


class TestDenoProvider(ProviderTestCase):

    def test_detects_deno_land_import(self) -> None:
        partial = self.contribute(DenoProvider(), {'index.ts': DENO_SERVER})

        self.assertEqual([pkg.name for pkg in partial.phase('setup').pkgs], ['deno'])
        build = partial.phase('build')
        self.assertEqual(build.cmds, ('deno cache index.ts',))
        self.assertEqual(build.depends_on, ('setup',))
        self.assertEqual(partial.start.cmd, 'deno run --allow-all index.ts')

    def test_task_start_wins(self) -> None:
        partial = self.contribute(DenoProvider(), {
            'deno.json': {'tasks': {'start': 'deno run --allow-net main.ts'}},
            'src/index.ts': 'console.log("hi");\n',
        })
        self.assertEqual(partial.start.cmd, 'deno run --allow-net main.ts')
        self.assertEqual(partial.phase('build').cmds, ('deno cache src/index.ts',))

    def test_plain_typescript_is_not_deno(self) -> None:
        self.make_repo({'index.ts': 'import x from "./x.ts";\n'})
        self.assertFalse(DenoProvider().detect(App(self.repo_path), Environment()))

    def test_no_entrypoint_means_no_start(self) -> None:
        partial = self.contribute(DenoProvider(), {'deno.json': {}})
        self.assertIsNone(partial.start)
        self.assertEqual(partial.phase('build').cmds, ())


class TestNodeProvider(ProviderTestCase):

    def test_npm_with_lock_file(self) -> None:
        partial = self.contribute(NodeProvider(), {
            'package.json': {'engines': {'node': '>=20.1'}, 'scripts': {'start': 'node server.js'}},
            'package-lock.json': '{}',
        })

        self.assertEqual([str(pkg) for pkg in partial.phase('setup').pkgs], ['nodejs@20'])
        install = partial.phase('install')
        self.assertEqual(install.cmds, ('npm ci',))
        self.assertEqual(install.only_include_files, ('package.json', 'package-lock.json'))
        self.assertIsNone(partial.phase('build'))
        self.assertEqual(partial.start.cmd, 'npm run start')
        self.assertEqual(partial.variables['NODE_ENV'], 'production')

    def test_yarn_next_app(self) -> None:
        partial = self.contribute(NodeProvider(), {
            'package.json': {'dependencies': {'next': '14'}, 'scripts': {'start': 'next start'}},
            'yarn.lock': '',
        })

        self.assertIn('yarn', [pkg.name for pkg in partial.phase('setup').pkgs])
        build = partial.phase('build')
        self.assertEqual(build.cmds, ('yarn build',))
        self.assertIn('.next/cache', build.cache_directories)
        self.assertEqual(partial.start.cmd, 'yarn start')

    def test_falls_back_to_entry_file(self) -> None:
        partial = self.contribute(NodeProvider(), {'package.json': {}, '.nvmrc': 'v16\n', 'server.js': ''})
        self.assertEqual(str(partial.phase('setup').pkgs[0]), 'nodejs@16')
        self.assertEqual(partial.start.cmd, 'node server.js')


class TestPythonProviders(ProviderTestCase):

    def test_fastapi_with_requirements(self) -> None:
        partial = self.contribute(PythonProvider(), {
            'requirements.txt': 'fastapi\nuvicorn\npsycopg2==2.9\n',
            '.python-version': '3.12\n',
            'main.py': '',
        })

        setup = partial.phase('setup')
        self.assertEqual(str(setup.pkgs[0]), 'python@3.12')
        self.assertEqual([pkg.name for pkg in setup.apt_pkgs], ['libpq-dev'])
        self.assertIn('pip install -r requirements.txt', partial.phase('install').cmds[0])
        self.assertTrue(partial.start.cmd.startswith('uvicorn main:app'))
        self.assertEqual(partial.variables['VIRTUAL_ENV'], '/opt/venv')

    def test_poetry_and_requires_python(self) -> None:
        partial = self.contribute(PythonProvider(), {
            'pyproject.toml': '[project]\nrequires-python = ">=3.10"\ndependencies = ["flask"]\n',
            'poetry.lock': '',
            'app.py': '',
        })

        self.assertEqual([str(pkg) for pkg in partial.phase('setup').pkgs], ['python@3.10', 'poetry'])
        self.assertIn('poetry install', partial.phase('install').cmds[0])
        self.assertTrue(partial.start.cmd.startswith('gunicorn app:app'))

    def test_requirements_directory(self) -> None:
        partial = self.contribute(PythonProvider(), {
            'requirements/base.txt': 'flask\npsycopg2\n',
            'requirements/dev.txt': '-r base.txt\npytest\n',
            'app.py': '',
        })

        install = partial.phase('install')
        self.assertIn('pip install -r requirements/base.txt', install.cmds[0])
        self.assertEqual(install.only_include_files, ('requirements',))
        self.assertEqual(install.paths, ('/opt/venv/bin',))
        self.assertEqual([pkg.name for pkg in partial.phase('setup').apt_pkgs], ['libpq-dev'])
        self.assertTrue(partial.start.cmd.startswith('gunicorn app:app'))

    def test_broken_pyproject_is_skipped(self) -> None:
        partial = self.contribute(PythonProvider(), {'pyproject.toml': '[project', 'main.py': ''})
        self.assertEqual(str(partial.phase('setup').pkgs[0]), 'python@3.11')
        self.assertEqual(partial.start.cmd, 'python main.py')

    def test_django_project(self) -> None:
        partial = self.contribute(DjangoProvider(), {
            'manage.py': '',
            'requirements.txt': 'Django>=4.2\ngunicorn\n',
            'mysite/__init__.py': '',
            'mysite/settings.py': '',
            'mysite/wsgi.py': '',
        })

        self.assertEqual(partial.phase('build').cmds, ('python manage.py collectstatic --noinput',))
        self.assertIn('gunicorn mysite.wsgi:application', partial.start.cmd)
        self.assertEqual(partial.variables, {'DJANGO_SETTINGS_MODULE': 'mysite.settings'})

    def test_manage_py_without_django(self) -> None:
        self.make_repo({'manage.py': '', 'requirements.txt': 'flask\n'})
        self.assertFalse(DjangoProvider().detect(App(self.repo_path), Environment()))

    def test_django_settings_in_root(self) -> None:
        partial = self.contribute(DjangoProvider(), {
            'manage.py': '',
            'requirements.txt': 'Django>=4.2\n',
            'settings.py': '',
            'wsgi.py': '',
        })

        self.assertIn('manage.py runserver', partial.start.cmd)
        self.assertNotIn('DJANGO_SETTINGS_MODULE', partial.variables)


class TestCompiledProviders(ProviderTestCase):

    def test_go_module(self) -> None:
        partial = self.contribute(GoProvider(), {
            'go.mod': 'module example.com/app\n\ngo 1.22\n',
            'go.sum': '',
            'cmd/server/main.go': 'package main\n',
        })

        self.assertEqual(str(partial.phase('setup').pkgs[0]), 'go@1.22')
        self.assertEqual(partial.phase('install').only_include_files, ('go.mod', 'go.sum'))
        self.assertEqual(partial.phase('build').cmds, ('go build -o out ./cmd/server',))
        self.assertTrue(partial.start.use_slim_image)

    def test_go_cgo_keeps_full_image(self) -> None:
        partial = self.contribute(GoProvider(), {'main.go': 'package main\n'}, Environment({'WEBOPS_GO_CGO': '1'}))
        self.assertFalse(partial.start.use_slim_image)
        self.assertIsNone(partial.phase('install'))

    def test_rust_binary(self) -> None:
        partial = self.contribute(RustProvider(), {
            'Cargo.toml': '[package]\nname = "hello"\nrust-version = "1.75"\n',
        })

        self.assertEqual(str(partial.phase('setup').pkgs[0]), 'rust@1.75')
        self.assertEqual(partial.start.cmd, './target/release/hello')
        self.assertEqual(partial.start.only_include_files, ('target/release/hello',))

    def test_rust_workspace_has_no_start(self) -> None:
        partial = self.contribute(RustProvider(), {'Cargo.toml': '[workspace]\nmembers = ["a"]\n'})
        self.assertIsNone(partial.start)

    def test_java_maven_wrapper(self) -> None:
        partial = self.contribute(JavaProvider(), {
            'pom.xml': '<project><properties><java.version>21</java.version></properties>'
                       '<artifactId>spring-boot-starter</artifactId></project>',
            'mvnw': '',
        })

        self.assertEqual([str(pkg) for pkg in partial.phase('setup').pkgs], ['jdk@21'])
        self.assertEqual(partial.phase('build').cmds, ('./mvnw -DskipTests clean package',))
        self.assertEqual(partial.start.cmd, 'java $JAVA_OPTS -jar target/*.jar')

    def test_java_gradle_quarkus(self) -> None:
        partial = self.contribute(JavaProvider(), {'build.gradle': "id 'io.quarkus'\n"})
        self.assertIn('gradle', [pkg.name for pkg in partial.phase('setup').pkgs])
        self.assertEqual(partial.start.cmd, 'java $JAVA_OPTS -jar build/libs/*-runner.jar')


class TestScriptingProviders(ProviderTestCase):

    def test_rails_app(self) -> None:
        partial = self.contribute(RubyProvider(), {
            'Gemfile': "source 'https://rubygems.org'\nruby '3.2.2'\ngem 'rails'\ngem 'pg'\n",
            'config/application.rb': '',
        })

        setup = partial.phase('setup')
        self.assertEqual(str(setup.pkgs[0]), 'ruby@3.2.2')
        self.assertEqual([pkg.name for pkg in setup.apt_pkgs], ['libpq-dev'])
        self.assertEqual(partial.phase('build').cmds, ('bundle exec rails assets:precompile',))
        self.assertIn('puma', partial.start.cmd)
        self.assertEqual(partial.variables['RAILS_ENV'], 'production')

    def test_plain_ruby_has_no_start(self) -> None:
        partial = self.contribute(RubyProvider(), {'Gemfile': "gem 'rake'\n"})
        self.assertIsNone(partial.start)
        self.assertIsNone(partial.phase('build'))

    def test_laravel(self) -> None:
        partial = self.contribute(PhpProvider(), {
            'composer.json': {'require': {'php': '^8.2'}},
            'artisan': '',
        })

        self.assertEqual([str(pkg) for pkg in partial.phase('setup').pkgs], ['php@8.2', 'composer'])
        self.assertIn('composer install', partial.phase('install').cmds[0])
        self.assertIn('-t public', partial.start.cmd)

    def test_php_range_constraint(self) -> None:
        for constraint, expected in (('>=8.1 <9', 'php@8.1'), ('^8.1|^8.2', 'php@8.1'), ('*', 'php')):
            partial = self.contribute(PhpProvider(), {'composer.json': {'require': {'php': constraint}}})
            self.assertEqual(str(partial.phase('setup').pkgs[0]), expected)

    def test_plain_php(self) -> None:
        partial = self.contribute(PhpProvider(), {'index.php': '<?php echo 1;'})
        self.assertIsNone(partial.phase('install'))
        self.assertEqual(partial.start.cmd, 'php -S 0.0.0.0:${PORT:-8080}')

    def test_phoenix(self) -> None:
        partial = self.contribute(ElixirProvider(), {
            'mix.exs': 'defp deps do\n  [{:phoenix, "~> 1.7"}]\nend\n',
            '.tool-versions': 'elixir 1.15.7\nerlang 26.1\n',
            'assets/package.json': {},
        })

        self.assertEqual(
            [str(pkg) for pkg in partial.phase('setup').pkgs],
            ['elixir@1.15.7', 'erlang@26.1', 'nodejs'],
        )
        self.assertIn('mix assets.deploy', partial.phase('build').cmds)
        self.assertIn('phx.server', partial.start.cmd)


class TestStaticfileProvider(ProviderTestCase):

    def test_staticfile_root(self) -> None:
        partial = self.contribute(StaticfileProvider(), {'Staticfile': 'root: site/\n', 'site/index.html': ''})

        self.assertEqual(partial.phases, ())
        self.assertTrue(partial.start.cmd.startswith('cp -r site/. /usr/share/nginx/html'))
        self.assertEqual(partial.start.run_image, 'nginx:alpine')
        self.assertEqual(partial.start.only_include_files, ('site',))

    def test_configured_root(self) -> None:
        partial = self.contribute(StaticfileProvider(), {}, Environment({'WEBOPS_STATIC_ROOT': '/out/'}))
        self.assertEqual(partial.start.only_include_files, ('out',))

    def test_not_detected_without_marker(self) -> None:
        self.make_repo({'public/index.html': ''})
        self.assertFalse(StaticfileProvider().detect(App(self.repo_path), Environment()))
