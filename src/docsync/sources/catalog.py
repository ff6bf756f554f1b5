"""Built-in source catalog, used when no SOURCES_FILE is configured"""

from docsync.models import SOURCE_TYPE_CHANNEL, SOURCE_TYPE_README, SOURCE_TYPE_REPO


def _repo(id, label, location, content_subpath='docs/content', ref='main', **extra):
    return dict(id=id, label=label, type=SOURCE_TYPE_REPO, location=location, ref=ref,
                content_subpath=content_subpath, **extra)


def _readme(id, label, location, ref='main'):
    return dict(id=id, label=label, type=SOURCE_TYPE_README, location=location, ref=ref)


REPO_SOURCES = [
    # Core
    _repo('nuxt', 'Nuxt', 'nuxt/nuxt', 'docs', additional_merges=[
        {'location': 'nuxt/nuxt.com', 'ref': 'main', 'content_subpath': 'content'},
    ]),
    _repo('nitro', 'Nitro', 'nitrojs/nitro', 'docs', ref='v3'),

    # Modules
    _repo('nuxt-ui', 'Nuxt UI', 'nuxt/ui', ref='v4'),
    _repo('nuxt-hub', 'NuxtHub', 'nuxt-hub/core'),
    _repo('nuxt-content', 'Nuxt Content', 'nuxt/content'),
    _repo('nuxt-image', 'Nuxt Image', 'nuxt/image'),
    _repo('nuxt-i18n', 'Nuxt i18n', 'nuxt-modules/i18n'),
    _repo('nuxt-scripts', 'Nuxt Scripts', 'nuxt/scripts'),
    _repo('nuxt-fonts', 'Nuxt Fonts', 'nuxt/fonts'),
    _repo('nuxt-eslint', 'Nuxt ESLint', 'nuxt/eslint'),
    _repo('nuxt-devtools', 'Nuxt DevTools', 'nuxt/devtools'),

    # README only
    _readme('nuxt-icon', 'Nuxt Icon', 'nuxt/icon'),
    _readme('nuxt-auth-utils', 'Nuxt Auth Utils', 'atinux/nuxt-auth-utils'),
    _readme('ofetch', 'ofetch', 'unjs/ofetch'),

    # UnJS
    _repo('h3', 'H3', 'unjs/h3', 'docs'),
    _repo('unstorage', 'unstorage', 'unjs/unstorage', 'docs'),
    _repo('unhead', 'Unhead', 'unjs/unhead', 'docs'),

    # SEO
    _repo('nuxt-og-image', 'Nuxt OG Image', 'nuxt-modules/og-image'),
    _repo('nuxt-sitemap', 'Nuxt Sitemap', 'nuxt-modules/sitemap'),
    _repo('nuxt-robots', 'Nuxt Robots', 'nuxt-modules/robots'),

    # Other
    _repo('mcp-toolkit', 'MCP Toolkit', 'nuxt-modules/mcp-toolkit', 'apps/docs/content'),
    _repo('nuxt-studio', 'Nuxt Studio', 'nuxt-content/nuxt-studio', 'docs'),
]

CHANNEL_SOURCES = [
    dict(id='alex-lichter', label='Alexander Lichter', type=SOURCE_TYPE_CHANNEL,
         channel_id='UCqFPgMzGbLjd-MX-h3Z5aQA', handle='@TheAlexLichter', max_items=100),
    dict(id='learn-vue', label='LearnVue', type=SOURCE_TYPE_CHANNEL,
         channel_id='UCGwuxdEeCf0TIA2RbPOj-8g', handle='@LearnVue', max_items=50),
]

DEFAULT_CATALOG = REPO_SOURCES + CHANNEL_SOURCES
